# -*- coding: utf-8 -*-
"""
Contract Invoker - AgriChain Ledger

String-in, string-out dispatcher over the ledger operations, for callers
that address the ledger by function name with positional string
arguments (transaction runtimes, gateways, replay tools).

Return payloads:
    - records and lists of records: JSON using the persisted field names
    - existence checks: ``"true"`` or ``"false"``
    - InitLedger: ``""``

Example:
    >>> invoker = ContractInvoker(service)
    >>> invoker.invoke("CreateProduct", '{"id": "P1"}')
    >>> invoker.invoke("ProductExists", "P1")
    'true'

Author: AgriChain Platform Team
Status: Production Ready
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Tuple

from pydantic import BaseModel

from agrichain.exceptions import ValidationError

if TYPE_CHECKING:
    from agrichain.setup import AgriChainService

logger = logging.getLogger(__name__)


def encode_result(result: Any) -> str:
    """Encode an operation result as an invocation payload."""
    if result is None:
        return ""
    if isinstance(result, bool):
        return "true" if result else "false"
    if isinstance(result, BaseModel):
        return result.model_dump_json(by_alias=True)
    if isinstance(result, list):
        return json.dumps(
            [
                item.model_dump(mode="json", by_alias=True)
                if isinstance(item, BaseModel) else item
                for item in result
            ]
        )
    return str(result)


class ContractInvoker:
    """Dispatches named invocations to an AgriChainService.

    Attributes:
        _functions: Function name -> (handler, arity).
    """

    def __init__(self, service: AgriChainService) -> None:
        self._service = service
        self._functions: Dict[str, Tuple[Callable[..., Any], int]] = {
            "InitLedger": (service.init_ledger, 0),
            "CreateProduct": (service.create_product, 1),
            "GetProduct": (service.get_product, 1),
            "UpdateProductStatus": (service.update_product_status, 4),
            "AddSupplyChainStep": (service.add_supply_chain_step, 2),
            "GetProductHistory": (service.get_product_history, 1),
            "ProductExists": (service.product_exists, 1),
            "CreateFarmer": (service.create_farmer, 1),
            "GetFarmer": (service.get_farmer, 1),
            "AddCertificate": (service.add_certificate, 1),
            "GetCertificate": (service.get_certificate, 1),
            "QueryProductsByFarmer": (service.query_products_by_farmer, 1),
            "QueryProductsByStatus": (service.query_products_by_status, 1),
        }

    @property
    def function_names(self) -> List[str]:
        return sorted(self._functions)

    def invoke(self, function: str, *args: str) -> str:
        """Invoke a ledger function by name.

        Args:
            function: Entry point name (e.g. ``UpdateProductStatus``).
            *args: Positional string arguments.

        Returns:
            The encoded result payload.

        Raises:
            ValidationError: If the function is unknown, the argument count
                is wrong, or an argument is not a string.
            AgriChainException: Whatever the operation itself raises.
        """
        entry = self._functions.get(function)
        if entry is None:
            logger.warning("Rejected invocation of unknown function %s", function)
            raise ValidationError(
                message=f"unknown function {function!r}",
                context={"function": function},
            )

        handler, arity = entry
        if len(args) != arity:
            raise ValidationError(
                message=(
                    f"{function} takes {arity} argument(s), got {len(args)}"
                ),
                context={"function": function, "arity": arity},
            )
        for position, arg in enumerate(args):
            if not isinstance(arg, str):
                raise ValidationError(
                    message=f"{function} argument {position} must be a string",
                    context={"function": function, "position": position},
                )

        logger.debug("Invoking %s with %d argument(s)", function, arity)
        return encode_result(handler(*args))


__all__ = ["ContractInvoker", "encode_result"]
