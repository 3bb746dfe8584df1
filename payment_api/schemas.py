from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class PaymentRequestBase(BaseModel):
    # Fields stay optional here; presence and format are checked by the
    # adapters so failures come back in the payment envelope.
    model_config = ConfigDict(populate_by_name=True)

    amount: Optional[Decimal] = None
    customer_name: Optional[str] = Field(None, alias="customerName")
    customer_email: Optional[str] = Field(None, alias="customerEmail")
    ecomm_plan: Optional[str] = Field(None, alias="ecommPlan")
    hosting_plan: Optional[str] = Field(None, alias="hostingPlan")


class PhonePeInitiateRequest(PaymentRequestBase):
    customer_phone: Optional[Union[str, int]] = Field(None, alias="customerPhone")


class PayPalInitiateRequest(PaymentRequestBase):
    pass


class PayPalCaptureRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    order_id: Optional[str] = Field(None, alias="orderID")
