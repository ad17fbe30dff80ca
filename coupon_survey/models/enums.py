"""Survey answer enums."""
from enum import Enum


class AgeRange(str, Enum):
    """Age bracket selected on step 1."""

    AGE_18_24 = "18-24"
    AGE_25_34 = "25-34"
    AGE_35_44 = "35-44"
    AGE_45_54 = "45-54"
    AGE_55_64 = "55-64"
    AGE_65_PLUS = "65+"


class Gender(str, Enum):
    """Gender selected on step 2."""

    MALE = "male"
    FEMALE = "female"


class Channel(str, Enum):
    """Discovery/purchase channels offered on step 3 (multi-select)."""

    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"
    ECOMMERCE = "ecommerce"
    RETAIL = "retail"
    MEDICAL = "medical"
    OTHER = "other"


class PriceRange(str, Enum):
    """Price bracket (THB) selected on step 4."""

    LTE_500 = "lte500"
    FROM_500_TO_1500 = "500-1500"
    FROM_1500_TO_2500 = "1500-2500"
    GTE_2500 = "gte2500"
