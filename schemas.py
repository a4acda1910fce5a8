from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import parse_amount


class TransactionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    amount: Decimal
    title: str = Field(default="", max_length=200)
    category: str = Field(default="", max_length=100)
    date: str
    repeat_time: str = Field(default="", alias="repeatTime", max_length=200)

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_from_number(cls, value):
        if isinstance(value, float):
            return parse_amount(value)
        return value


class CategoryIn(BaseModel):
    name: str = Field(..., max_length=100)


class TokenOut(BaseModel):
    token: str


class CreatedOut(BaseModel):
    id: str
