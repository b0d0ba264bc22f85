"""Grand Villa community catalogue: care levels, amenities and location pricing."""

import logging
from typing import Optional

logger = logging.getLogger(__name__)

CARE_LEVELS: list[str] = ["Independent Living", "Assisted Living", "Memory Care"]

AMENITIES: dict[str, list[str]] = {
    "care": [
        "Care tailored to each resident, so families pay only for services used",
        "Assisted Living includes daily meals, housekeeping and laundry, apartment "
        "maintenance, scheduled transportation, recreational activities, medication "
        "and bathing assistance, and 24-hour staffing",
    ],
    "safety": [
        "Resident Care Technology for timely, dignified care delivery",
        "Medication ordering and delivery through a preferred provider",
    ],
    "lifestyle": [
        "Three acres of resort-style grounds with walking paths, courtyard, gazebo and BBQ areas",
        "Restaurant-style dining room serving three chef-prepared meals daily",
        "Yoga, Zumba, gardening club, walking club, Wii bowling, painting, Bingo "
        "tournaments, parties, classes, lectures and excursions",
        "Studio, one-bedroom and two-bedroom apartments, private or companion living",
    ],
    "convenience": [
        "All-inclusive monthly rates covering dining, housekeeping, laundry and more",
        "A \"looks like home, feels like family\" atmosphere",
    ],
}

LOCATIONS: dict[str, dict] = {
    "clearwater": {
        "name": "Grand Villa of Clearwater",
        "pricing": {
            "Semi-private": "from $3,934/mo",
            "1-Bedroom": "from $4,720/mo",
            "Studio": "from $5,114/mo",
        },
        "nearby": ["clearwater", "largo", "dunedin", "safety harbor", "tampa",
                   "st. petersburg", "st petersburg", "palm harbor", "pinellas"],
    },
    "englewood": {
        "name": "Grand Villa of Englewood",
        "pricing": {
            "Independent Living": "from $2,295/mo",
            "Assisted Living": "from $2,795/mo",
            "Memory Care": "from $3,495/mo",
        },
        "nearby": ["englewood", "venice", "port charlotte", "north port", "sarasota",
                   "punta gorda", "fort myers"],
    },
    "ormond beach": {
        "name": "Grand Villa of Ormond Beach",
        "pricing": {
            "Semi-private": "from $2,495/mo",
            "Studio": "$3,095+/mo",
            "1-Bedroom": "$3,995+/mo",
        },
        "nearby": ["ormond beach", "ormond", "daytona", "daytona beach", "palm coast",
                   "port orange", "flagler", "st. augustine", "jacksonville"],
    },
    "lakeland": {
        "name": "Grand Villa of Lakeland",
        "pricing": {
            "Private Room": "from $3,800/mo",
            "Studio": "from $4,500/mo",
            "One Bedroom": "from $5,300/mo",
        },
        "nearby": ["lakeland", "winter haven", "plant city", "bartow", "polk",
                   "brandon", "orlando", "kissimmee"],
    },
    "deland": {
        "name": "Grand Villa of DeLand",
        "pricing": {
            "Assisted Living": "$2,895 to $4,095/mo",
            "Average": "$3,145/mo, below the area average of $4,760/mo",
        },
        "nearby": ["deland", "deltona", "orange city", "debary", "sanford", "volusia"],
    },
}

DEFAULT_LOCATION_KEY = "clearwater"


def nearest_location(user_location: Optional[str]) -> dict:
    """Best-effort match of a free-form city/state/zip to a community.

    Falls back to the default community when nothing matches.
    """
    if user_location:
        normalized = user_location.lower()
        for key, location in LOCATIONS.items():
            if key in normalized or any(alias in normalized for alias in location["nearby"]):
                return location
        logger.debug("No community matched location %r, using default", user_location)
    return LOCATIONS[DEFAULT_LOCATION_KEY]


def format_pricing(location: dict) -> str:
    lines = [f"- {location['name']}"]
    for label, price in location["pricing"].items():
        lines.append(f"{label}: {price}")
    return "\n".join(lines)


def facility_info(location: Optional[dict] = None) -> str:
    """Reference text about the communities, used to ground replies.

    With ``location`` the pricing section lists only that community.
    """
    priced = [location] if location is not None else list(LOCATIONS.values())
    sections = [
        "1. Care options & Services",
        f"- Offers three main care levels: {', '.join(CARE_LEVELS)}",
        *(f"- {item}" for item in AMENITIES["care"]),
        "",
        "2. Safety & Technology",
        *(f"- {item}" for item in AMENITIES["safety"]),
        "",
        "3. Community & Lifestyle",
        *(f"- {item}" for item in AMENITIES["lifestyle"]),
        "",
        "4. Dining, Housekeeping & Convenience",
        *(f"- {item}" for item in AMENITIES["convenience"]),
        "",
        "5. Pricing Estimates",
        *(format_pricing(entry) for entry in priced),
    ]
    return "\n".join(sections)
