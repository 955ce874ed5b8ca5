from pydantic import BaseModel


class MetricInstrument(BaseModel):
    name: str
    help: str
    value: float
