from typing import Optional

from pydantic import BaseModel, model_validator


class CartItem(BaseModel):
    """
    One unit being priced or purchased.
    Reserved seating identifies a seat by `id`; general admission identifies
    a ticket type by `ticket_type_id`. Prices always come from the server.
    """

    id: Optional[str] = None
    ticket_type_id: Optional[str] = None

    @model_validator(mode="after")
    def require_reference(self) -> "CartItem":
        if not self.id and not self.ticket_type_id:
            raise ValueError("either id or ticket_type_id is required")
        return self
