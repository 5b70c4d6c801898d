# Overview: Operator roles and their default POS capabilities.
# Each entry: role -> (can_give_discount, max_discount_percent, can_change_price)

ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_SELLER = "seller"
ROLE_CASHIER = "cashier"
ROLE_STOCKIST = "stockist"

VALID_ROLES = [
    ROLE_OWNER,
    ROLE_ADMIN,
    ROLE_MANAGER,
    ROLE_SELLER,
    ROLE_CASHIER,
    ROLE_STOCKIST,
]

# Roles allowed to sell past available stock (after explicit confirmation)
STOCK_OVERRIDE_ROLES = frozenset({ROLE_OWNER, ROLE_ADMIN, ROLE_MANAGER})


DEFAULT_ROLE_PERMISSIONS = {
    ROLE_OWNER: {
        "can_give_discount": True,
        "max_discount_percent": 100,
        "can_change_price": True,
    },
    ROLE_ADMIN: {
        "can_give_discount": True,
        "max_discount_percent": 100,
        "can_change_price": True,
    },
    ROLE_MANAGER: {
        "can_give_discount": True,
        "max_discount_percent": 50,
        "can_change_price": True,
    },
    ROLE_SELLER: {
        "can_give_discount": True,
        "max_discount_percent": 10,
        "can_change_price": False,
    },
    ROLE_CASHIER: {
        "can_give_discount": False,
        "max_discount_percent": 5,
        "can_change_price": False,
    },
    ROLE_STOCKIST: {
        "can_give_discount": False,
        "max_discount_percent": 0,
        "can_change_price": False,
    },
}
