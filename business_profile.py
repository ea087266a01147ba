"""
Business profile: central place to declare brand, persona, currency, fleet
defaults and ticket rendering. Tools and prompts read from here instead of
hardcoding. Swap this out per operator.
"""

BUSINESS_PROFILE = {
    "brand": "Ena Coach",
    "assistant_name": "Martha",
    "currency": "KES",
    "timezone": "Africa/Nairobi",
    "fleet": {
        "default_capacity": 45,
        "initial_seats_min": 30,
        "initial_seats_max": 39,
        "leg_minutes": 90,
    },
    "tickets": {
        "qr_base_url": "https://api.qrserver.com/v1/create-qr-code/?size=250x250&data=",
    },
    "payments": {
        "account_reference": "EnaCoach",
        "description": "Bus Ticket",
    },
    "persona": {
        "style": "Keep replies short and friendly.",
    },
}


def format_amount(amount: float) -> str:
    return f"{BUSINESS_PROFILE['currency']} {amount:,.0f}"
