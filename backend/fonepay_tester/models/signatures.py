"""
Pydantic SignaturePayload Model

Represents the canonical signing message and its HMAC-SHA512 digest
(the provider's `dataValidation` field).
"""
from pydantic import BaseModel, Field


class SignaturePayload(BaseModel):
    """
    Signing message plus digest.

    Notes:
    - Derived, never stored; recomputed per call
    - digest_hex is uppercase hexadecimal, always 128 characters
    """

    message: str = Field(
        description="Comma-joined signing fields, in provider order"
    )
    digest_hex: str = Field(
        alias="digestHex",
        description="HMAC-SHA512 digest in uppercase hexadecimal",
        pattern="^[0-9A-F]{128}$"
    )

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {
                "message": "test-abc123,fonepay123",
                "digestHex": "50B791A3EBDA8823AF8408C4E1AF6489D8A3314475039045B5A7D9E31C6E69EA"
                             "E6FB7C91753B05B02D8C7C598D2AD43D4519D688220E0BD5B229501631BE4088"
            }
        }
    }
