"""Chat models the client may pick from."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Model:
    id: str
    label: str
    api_identifier: str
    description: str


MODELS: list[Model] = [
    Model(
        id="gemini-flash",
        label="Gemini Flash",
        api_identifier="gemini-2.0-flash",
        description="Fast model for everyday tasks",
    ),
    Model(
        id="gemini-pro",
        label="Gemini Pro",
        api_identifier="gemini-2.5-pro",
        description="For complex, multi-step tasks",
    ),
]


def get_model(model_id: str) -> Model | None:
    return next((m for m in MODELS if m.id == model_id), None)
