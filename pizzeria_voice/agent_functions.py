# pizzeria_voice/agent_functions.py
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .catalog import Catalog, DEFAULT_SIZE, round_money
from .session import CartLine

SIZES = ("Small", "Medium", "Large", "X-Large")


def _canonical_size(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    for s in SIZES:
        if s.lower() == str(v).strip().lower():
            return s
    raise ValueError(f"size must be one of {', '.join(SIZES)}")


def _ensure_list(x) -> List[str]:
    if x is None:
        return []
    if isinstance(x, (list, tuple)):
        return [str(i) for i in x if i is not None and str(i).strip()]
    return [str(x)]


# ---------- Argument models (mirror FUNCTION_DEFS) ----------
class _Args(BaseModel):
    model_config = ConfigDict(extra="ignore")


class AddToCartArgs(_Args):
    item: str = Field(min_length=1)
    quantity: int = Field(default=1, ge=1)
    size: str = DEFAULT_SIZE
    customizations: List[str] = Field(default_factory=list)

    @field_validator("size", mode="before")
    @classmethod
    def check_size(cls, v):
        return _canonical_size(v) or DEFAULT_SIZE

    @field_validator("customizations", mode="before")
    @classmethod
    def listify(cls, v):
        return _ensure_list(v)


class ModifyCartItemArgs(_Args):
    item: str = Field(min_length=1)
    quantity: Optional[int] = Field(default=None, ge=1)
    size: Optional[str] = None
    customizations: Optional[List[str]] = None

    @field_validator("size", mode="before")
    @classmethod
    def check_size(cls, v):
        return _canonical_size(v)

    @field_validator("customizations", mode="before")
    @classmethod
    def listify(cls, v):
        return None if v is None else _ensure_list(v)


class RemoveFromCartArgs(_Args):
    item: str = Field(min_length=1)


class ClearCartArgs(_Args):
    pass


class CheckoutArgs(_Args):
    delivery: bool = True
    address: Optional[str] = None
    phone: Optional[str] = None


# ---------- Cart ops (run against the session's validated cart) ----------
def _fail(error: str, **extra: Any) -> Dict[str, Any]:
    return {"success": False, "error": error, **extra}


def _line_view(line: CartLine, catalog: Catalog) -> Dict[str, Any]:
    item = catalog.get(line.item_ref)
    return {
        **line.to_dict(),
        "name": item.name if item else line.item_ref,
        "price": catalog.price_of(line),
    }


def cart_summary(cart: List[CartLine], catalog: Catalog) -> Dict[str, Any]:
    lines = [_line_view(l, catalog) for l in cart]
    return {
        "items": lines,
        "count": sum(l.quantity for l in cart),
        "subtotal": round_money(sum(l["price"] for l in lines)),
    }


def _resolve_customizations(names: List[str], catalog: Catalog) -> Tuple[List[str], Optional[str]]:
    out: List[str] = []
    for n in names:
        m = catalog.resolve_customization(n)
        if not m:
            return [], f"Customization '{n}' is not available."
        if m not in out:
            out.append(m)
    return out, None


def _find_line(cart: List[CartLine], item_ref: str) -> Optional[CartLine]:
    for line in cart:
        if line.item_ref == item_ref:
            return line
    return None


def add_to_cart(cart: List[CartLine], catalog: Catalog, args: AddToCartArgs) -> Dict[str, Any]:
    item = catalog.resolve_item(args.item)
    if not item:
        return _fail(f"'{args.item}' is not on the menu.")
    size = catalog.resolve_size(args.size)
    if not size:
        return _fail(f"Size '{args.size}' is not available.")
    customizations, err = _resolve_customizations(args.customizations, catalog)
    if err:
        return _fail(err)

    for line in cart:
        if line.item_ref == item.id and line.size == size and sorted(line.customizations) == sorted(customizations):
            line.quantity += args.quantity
            break
    else:
        line = CartLine(item_ref=item.id, quantity=args.quantity, size=size, customizations=customizations)
        cart.append(line)
    return {"success": True, "item": _line_view(line, catalog), "cart": cart_summary(cart, catalog)}


def modify_cart_item(cart: List[CartLine], catalog: Catalog, args: ModifyCartItemArgs) -> Dict[str, Any]:
    item = catalog.resolve_item(args.item)
    if not item:
        return _fail(f"'{args.item}' is not on the menu.")
    line = _find_line(cart, item.id)
    if not line:
        return _fail(f"'{item.name}' is not in the cart.")

    size = line.size
    if args.size is not None:
        size = catalog.resolve_size(args.size)
        if not size:
            return _fail(f"Size '{args.size}' is not available.")
    customizations = line.customizations
    if args.customizations is not None:
        customizations, err = _resolve_customizations(args.customizations, catalog)
        if err:
            return _fail(err)

    # all-or-nothing: only touch the line once everything resolved
    line.size = size
    line.customizations = list(customizations)
    if args.quantity is not None:
        line.quantity = args.quantity
    return {"success": True, "item": _line_view(line, catalog), "cart": cart_summary(cart, catalog)}


def remove_from_cart(cart: List[CartLine], catalog: Catalog, args: RemoveFromCartArgs) -> Dict[str, Any]:
    item = catalog.resolve_item(args.item)
    if not item:
        return _fail(f"'{args.item}' is not on the menu.")
    removed = [l for l in cart if l.item_ref == item.id]
    if not removed:
        return _fail(f"'{item.name}' is not in the cart.")
    cart[:] = [l for l in cart if l.item_ref != item.id]
    return {
        "success": True,
        "removed": [_line_view(l, catalog) for l in removed],
        "cart": cart_summary(cart, catalog),
    }


def clear_cart(cart: List[CartLine], catalog: Catalog, args: ClearCartArgs) -> Dict[str, Any]:
    cart.clear()
    return {"success": True, "cart": cart_summary(cart, catalog)}


def checkout(cart: List[CartLine], catalog: Catalog, args: CheckoutArgs) -> Dict[str, Any]:
    if not cart:
        return _fail("Cart is empty.")
    summary = cart_summary(cart, catalog)
    delivery = catalog.delivery
    fee = float(delivery.get("fee") or 0) if args.delivery else 0.0
    minimum = float(delivery.get("minimum") or 0)
    order = {
        **summary,
        "delivery": args.delivery,
        "address": args.address,
        "phone": args.phone,
        "delivery_fee": round_money(fee),
        "total": round_money(summary["subtotal"] + fee),
        "below_minimum": bool(args.delivery and summary["subtotal"] < minimum),
        "estimated_time": delivery.get("estimatedTime"),
    }
    cart.clear()
    return {"success": True, "order": order}


# ---------- Tool definitions (OpenAI Realtime expects this schema) ----------
FUNCTION_DEFS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "name": "add_to_cart",
        "description": "Add an item to the customer's cart",
        "parameters": {
            "type": "object",
            "properties": {
                "item": {"type": "string", "description": "The name of the menu item to add"},
                "quantity": {"type": "integer", "description": "The quantity of the item to add", "default": 1},
                "size": {
                    "type": "string",
                    "description": "The size of the item (Small, Medium, Large, X-Large)",
                    "enum": list(SIZES),
                    "default": DEFAULT_SIZE,
                },
                "customizations": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Any customizations for the item (extra toppings, crust, etc.)",
                },
            },
            "required": ["item"],
        },
    },
    {
        "type": "function",
        "name": "modify_cart_item",
        "description": "Modify an existing item in the customer's cart",
        "parameters": {
            "type": "object",
            "properties": {
                "item": {"type": "string", "description": "The name of the menu item to modify"},
                "quantity": {"type": "integer", "description": "The new quantity of the item"},
                "size": {"type": "string", "description": "The new size of the item", "enum": list(SIZES)},
                "customizations": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "The new customizations for the item",
                },
            },
            "required": ["item"],
        },
    },
    {
        "type": "function",
        "name": "remove_from_cart",
        "description": "Remove an item from the customer's cart",
        "parameters": {
            "type": "object",
            "properties": {"item": {"type": "string", "description": "The name of the menu item to remove"}},
            "required": ["item"],
        },
    },
    {
        "type": "function",
        "name": "clear_cart",
        "description": "Clear all items from the customer's cart",
        "parameters": {"type": "object", "properties": {}},
    },
    {
        "type": "function",
        "name": "checkout",
        "description": "Process the customer's order for checkout",
        "parameters": {
            "type": "object",
            "properties": {
                "delivery": {
                    "type": "boolean",
                    "description": "Whether the customer wants delivery or pickup",
                    "default": True,
                },
                "address": {"type": "string", "description": "Delivery address if applicable"},
                "phone": {"type": "string", "description": "Customer's phone number"},
            },
        },
    },
]

# --- Map tool names to (argument model, cart op) ---
FUNCTION_MAP: Dict[str, Tuple[Type[_Args], Callable[..., Dict[str, Any]]]] = {
    "add_to_cart": (AddToCartArgs, add_to_cart),
    "modify_cart_item": (ModifyCartItemArgs, modify_cart_item),
    "remove_from_cart": (RemoveFromCartArgs, remove_from_cart),
    "clear_cart": (ClearCartArgs, clear_cart),
    "checkout": (CheckoutArgs, checkout),
}
