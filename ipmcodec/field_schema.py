"""
Module: field_schema

Static catalog describing how each ISO 8583 data element is laid out on the wire.

A schema is a read-only mapping of field id (2..128) to :class:`FieldSpec`. Field 1 is
never described; it is the secondary bitmap marker and is always present.

Schemas can be written directly as ``FieldSpec`` instances, or in the dictionary
"bit config" form and converted with :func:`schema_from_bit_config`:

    bit_config = {
        "2": {"field_type": "LLVAR", "field_name": "PAN"},
        "4": {"field_type": "FIXED", "field_length": 12, "field_python_type": "int"},
        "48": {"field_type": "LLLVAR", "field_processor": "PDS"},
    }
    schema = schema_from_bit_config(bit_config)

Field types:
    - FIXED: exactly ``field_length`` bytes.
    - LLVAR: 2 ASCII digit length prefix followed by the value.
    - LLLVAR: 3 ASCII digit length prefix followed by the value.

Processors:
    - PDS: tag-rollup private data subelements.
    - ICC: compact TLV chip data. The field value is kept as bytes.
    - DE43: positional pattern split of the card acceptor name/location.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from types import MappingProxyType

FIXED = "FIXED"
LLVAR = "LLVAR"
LLLVAR = "LLLVAR"

STRING = "str"
INTEGER = "int"
DECIMAL = "decimal"
DATETIME = "datetime"

PDS = "PDS"
ICC = "ICC"
DE43 = "DE43"

FIELD_TYPES = (FIXED, LLVAR, LLLVAR)
VALUE_TYPES = (STRING, INTEGER, DECIMAL, DATETIME)
PROCESSORS = (PDS, ICC, DE43)

DEFAULT_DATE_FORMAT = "%y%m%d"

FieldValue = str | int | Decimal | datetime | bytes
Message = dict[str, FieldValue]


@dataclass(frozen=True)
class FieldSpec:
    field_type: str
    field_length: int = 0
    field_name: str = ""
    value_type: str = STRING
    date_format: str | None = None
    processor: str | None = None
    processor_config: str = ""

    @property
    def length_prefix_size(self) -> int:
        if self.field_type == LLVAR:
            return 2
        if self.field_type == LLLVAR:
            return 3
        return 0

    @property
    def is_variable(self) -> bool:
        return self.field_type != FIXED


def schema_from_bit_config(bit_config: dict) -> Mapping[int, FieldSpec]:
    """
    Builds a schema from a bit configuration dictionary.

    :param bit_config: Mapping of bit id (int or numeric string) to field details.
    :return: A read-only mapping of field id to FieldSpec.
    :raises ValueError: On an unknown field type, value type or processor, or a bit outside 2..128.
    """
    schema = {}

    for bit, bit_details in bit_config.items():
        bit_index = int(bit)
        if not 2 <= bit_index <= 128:
            raise ValueError(f"Bit {bit_index} cannot be configured, valid bits are 2 to 128")

        field_type = bit_details["field_type"]
        if field_type not in FIELD_TYPES:
            raise ValueError(f"Unknown field type: {field_type}")

        value_type = bit_details.get("field_python_type") or STRING
        if value_type not in VALUE_TYPES:
            raise ValueError(f"Unknown field python type: {value_type}")

        processor = bit_details.get("field_processor") or None
        if processor is not None and processor not in PROCESSORS:
            raise ValueError(f"Unknown field processor: {processor}")

        schema[bit_index] = FieldSpec(
            field_type=field_type,
            field_length=bit_details.get("field_length", 0),
            field_name=bit_details.get("field_name", ""),
            value_type=value_type,
            date_format=bit_details.get("field_date_format"),
            processor=processor,
            processor_config=bit_details.get("field_processor_config", ""),
        )

    return MappingProxyType(schema)


DE43_PATTERN = (
    r"(?P<NAME>.+?) *\\(?P<ADDRESS>.+?) *\\(?P<SUBURB>.+?) *\\"
    r"(?P<POSTCODE>.{10})(?P<STATE>.{3})(?P<COUNTRY>\S{3})"
)

_DEFAULT_BIT_CONFIG = {
    "2": {"field_name": "PAN", "field_type": LLVAR},
    "3": {"field_name": "Processing code", "field_type": FIXED, "field_length": 6},
    "4": {"field_name": "Amount transaction", "field_type": FIXED, "field_length": 12,
          "field_python_type": INTEGER},
    "5": {"field_name": "Amount, Reconciliation", "field_type": FIXED, "field_length": 12,
          "field_python_type": INTEGER},
    "6": {"field_name": "Amount, Cardholder billing", "field_type": FIXED, "field_length": 12,
          "field_python_type": INTEGER},
    "9": {"field_name": "Conversion rate, Reconciliation", "field_type": FIXED, "field_length": 8,
          "field_python_type": INTEGER},
    "10": {"field_name": "Conversion rate, Cardholder billing", "field_type": FIXED, "field_length": 8,
           "field_python_type": INTEGER},
    "12": {"field_name": "Date/Time local transaction", "field_type": FIXED, "field_length": 12,
           "field_python_type": DATETIME, "field_date_format": "%y%m%d%H%M%S"},
    "14": {"field_name": "Expiration date", "field_type": FIXED, "field_length": 4},
    "22": {"field_name": "Point of service data code", "field_type": FIXED, "field_length": 12},
    "23": {"field_name": "Card sequence number", "field_type": FIXED, "field_length": 3},
    "24": {"field_name": "Function code", "field_type": FIXED, "field_length": 3},
    "25": {"field_name": "Message reason code", "field_type": FIXED, "field_length": 4},
    "26": {"field_name": "Card acceptor business code", "field_type": FIXED, "field_length": 4,
           "field_python_type": INTEGER},
    "30": {"field_name": "Amounts, original", "field_type": FIXED, "field_length": 24},
    "31": {"field_name": "Acquirer reference data", "field_type": LLVAR, "field_length": 23},
    "32": {"field_name": "Acquiring institution ID code", "field_type": LLVAR},
    "33": {"field_name": "Forwarding institution ID code", "field_type": LLVAR},
    "37": {"field_name": "Retrieval reference number", "field_type": FIXED, "field_length": 12},
    "38": {"field_name": "Approval code", "field_type": FIXED, "field_length": 6},
    "40": {"field_name": "Service code", "field_type": FIXED, "field_length": 3},
    "41": {"field_name": "Card acceptor terminal ID", "field_type": FIXED, "field_length": 8},
    "42": {"field_name": "Card acceptor Id", "field_type": FIXED, "field_length": 15},
    "43": {"field_name": "Card acceptor name/location", "field_type": LLVAR,
           "field_processor": DE43, "field_processor_config": DE43_PATTERN},
    "48": {"field_name": "Additional data", "field_type": LLLVAR, "field_processor": PDS},
    "49": {"field_name": "Currency code, Transaction", "field_type": FIXED, "field_length": 3},
    "50": {"field_name": "Currency code, Reconciliation", "field_type": FIXED, "field_length": 3},
    "51": {"field_name": "Currency code, Cardholder billing", "field_type": FIXED, "field_length": 3},
    "54": {"field_name": "Amounts, additional", "field_type": LLLVAR},
    "55": {"field_name": "ICC system related data", "field_type": LLLVAR, "field_length": 255,
           "field_processor": ICC},
    "62": {"field_name": "Additional data 2", "field_type": LLLVAR, "field_processor": PDS},
    "63": {"field_name": "Transaction lifecycle Id", "field_type": LLLVAR, "field_length": 16},
    "71": {"field_name": "Message number", "field_type": FIXED, "field_length": 8,
           "field_python_type": INTEGER},
    "72": {"field_name": "Data record", "field_type": LLLVAR},
    "73": {"field_name": "Date, Action", "field_type": FIXED, "field_length": 6},
    "93": {"field_name": "Transaction destination institution ID", "field_type": LLVAR},
    "94": {"field_name": "Transaction originator institution ID", "field_type": LLVAR},
    "95": {"field_name": "Card issuer reference data", "field_type": LLVAR, "field_length": 10},
    "100": {"field_name": "Receiving institution ID", "field_type": LLVAR, "field_length": 11},
    "105": {"field_name": "Multi-Use Transaction Identification Data", "field_type": LLLVAR},
    "111": {"field_name": "Amount, currency conversion assignment", "field_type": LLLVAR},
    "123": {"field_name": "Additional data 3", "field_type": LLLVAR, "field_processor": PDS},
    "124": {"field_name": "Additional data 4", "field_type": LLLVAR, "field_processor": PDS},
    "125": {"field_name": "Additional data 5", "field_type": LLLVAR, "field_processor": PDS},
    "127": {"field_name": "Network data", "field_type": LLLVAR},
}

DEFAULT_SCHEMA = schema_from_bit_config(_DEFAULT_BIT_CONFIG)
