"""
Pydantic configuration for the Neighbor-Joining engine.
"""

from typing import Optional

from pydantic import BaseModel, Field


class NeighborJoiningConfig(BaseModel):
    """Settings for a NeighborJoining instance."""

    verbose: bool = Field(
        default=False,
        description="Log every join at INFO level.",
    )
    max_fraction_digits: Optional[int] = Field(
        default=None,
        ge=1,
        le=9,
        description=(
            "Round emitted branch lengths half-up to this many fraction "
            "digits. None keeps full precision."
        ),
    )
    check_distances: bool = Field(
        default=True,
        description=(
            "Reject matrices with negative or non-finite distances before "
            "clustering."
        ),
    )

    model_config = {"frozen": True}
