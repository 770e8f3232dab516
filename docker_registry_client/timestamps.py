"""RFC 3339 timestamps as registries emit them."""

import re
from datetime import datetime
from typing import Annotated

from pydantic import BeforeValidator

# Registries write nanosecond fractions; datetime holds microseconds
_FRACTION = re.compile(r"(\.\d{6})\d+")


def trim_fraction(value):
    if isinstance(value, str):
        return _FRACTION.sub(r"\1", value, count=1)
    return value


Timestamp = Annotated[datetime, BeforeValidator(trim_fraction)]
