"""Connectivity status model."""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class NetworkStatus(BaseModel):
    """Online flag plus link-quality hints when the platform provides them."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    is_online: bool = True
    effective_type: Optional[str] = None
    downlink: Optional[float] = None
    rtt: Optional[int] = None
