"""Static catalog of the models the deployment exposes."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from azure_chat.errors import InvalidModel


class ModelDescriptor(BaseModel):
    """Catalog entry; ``deployment`` is the Azure deployment route name."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    display_name: str
    description: str
    max_tokens: int
    default_temperature: float
    deployment: str


MODELS: dict[str, ModelDescriptor] = {
    descriptor.id: descriptor
    for descriptor in (
        ModelDescriptor(
            id="o3",
            display_name="O3",
            description="Most capable model for complex tasks",
            max_tokens=8192,
            default_temperature=0.7,
            deployment="o3-deployment",
        ),
        ModelDescriptor(
            id="o4-mini",
            display_name="O4 Mini",
            description="Balanced performance and cost",
            max_tokens=4096,
            default_temperature=0.7,
            deployment="o4-mini-deployment",
        ),
        ModelDescriptor(
            id="gpt-4.1",
            display_name="GPT-4.1",
            description="Advanced reasoning capabilities",
            max_tokens=8192,
            default_temperature=0.7,
            deployment="gpt-4-1-deployment",
        ),
        ModelDescriptor(
            id="gpt-4.1-mini",
            display_name="GPT-4.1 Mini",
            description="Efficient version of GPT-4.1",
            max_tokens=4096,
            default_temperature=0.7,
            deployment="gpt-4-1-mini-deployment",
        ),
        ModelDescriptor(
            id="gpt-4.1-nano",
            display_name="GPT-4.1 Nano",
            description="Fast responses for simple tasks",
            max_tokens=2048,
            default_temperature=0.7,
            deployment="gpt-4-1-nano-deployment",
        ),
    )
}


def get_model(model_id: str) -> ModelDescriptor:
    """Return the descriptor for ``model_id`` or raise ``InvalidModel``."""
    try:
        return MODELS[model_id]
    except (KeyError, TypeError):
        raise InvalidModel(str(model_id)) from None
