"""Synthetic signup data.

The core treats a CredentialSet as opaque input; generate_credentials() is
the default generator used by the HTTP trigger.
"""

import random
import secrets
import string

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

FIRST_NAMES = [
    "Ann", "Bruno", "Chloe", "Dmitri", "Elena", "Farah", "Gus", "Hana",
    "Ivan", "Jade", "Kofi", "Lena", "Mateo", "Nadia", "Omar", "Priya",
]
LAST_NAMES = [
    "Lee", "Okafor", "Schmidt", "Tanaka", "Garcia", "Novak", "Haddad",
    "Kim", "Silva", "Walsh", "Moreau", "Patel", "Larsen", "Rossi",
]
EMAIL_DOMAINS = ["example.com", "example.org", "example.net"]
PASSWORD_SYMBOLS = "!@#$%^&*"


class CredentialSet(BaseModel):
    """Dummy user data for one signup. password must equal confirm_password."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    confirm_password: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("password and confirmPassword must match")
        return self


def generate_password(length: int = 12) -> str:
    """Random password with at least one upper, lower, digit and symbol."""
    if length < 4:
        raise ValueError("password length must be at least 4")
    pools = [string.ascii_uppercase, string.ascii_lowercase, string.digits, PASSWORD_SYMBOLS]
    chars = [secrets.choice(pool) for pool in pools]
    alphabet = "".join(pools)
    chars += [secrets.choice(alphabet) for _ in range(length - len(chars))]
    random.SystemRandom().shuffle(chars)
    return "".join(chars)


def generate_credentials(rng: random.Random = None) -> CredentialSet:
    rng = rng or random.Random()
    first = rng.choice(FIRST_NAMES)
    last = rng.choice(LAST_NAMES)
    email = f"{first}.{last}{rng.randint(10, 9999)}@{rng.choice(EMAIL_DOMAINS)}".lower()
    password = generate_password(12)
    return CredentialSet(
        first_name=first,
        last_name=last,
        email=email,
        password=password,
        confirm_password=password,
    )
