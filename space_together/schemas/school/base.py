from enum import Enum


class SchoolType(str, Enum):
    PUBLIC = "Public"
    PRIVATE = "Private"
    CHARTER = "Charter"
    INTERNATIONAL = "International"


class AffiliationType(str, Enum):
    GOVERNMENT = "Government"
    RELIGIOUS = "Religious"
    NGO = "NGO"
    INDEPENDENT = "Independent"
