"""Persistence of the cart state subset that survives between sessions.

``CartState`` is the versioned serialisation contract. Adapters only move
its ``to_dict`` form in and out of storage; they never see UI flags.
When several sessions share one storage medium the last writer wins.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from pymongo import MongoClient

from ..errors import CartStateSchemaError
from ..utils.config import Config
from ..utils.logging import get_logger
from .models import (
    Branch,
    BranchId,
    CartItem,
    DeliveryDetails,
    ServiceType,
    SplitBillMode,
    TakeawayDetails,
)

logger = get_logger(__name__)

SCHEMA_VERSION = 1


@dataclass
class CartState:
    items: List[CartItem] = field(default_factory=list)
    cart_branch_id: Optional[BranchId] = None
    selected_branch: Optional[Branch] = None
    service_type: ServiceType = ServiceType.DINE_IN
    delivery_details: Optional[DeliveryDetails] = None
    takeaway_details: Optional[TakeawayDetails] = None
    special_instructions: str = ""
    selected_allergen_ids: List[Any] = field(default_factory=list)
    split_bill_mode: SplitBillMode = SplitBillMode.EQUALITY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schemaVersion": SCHEMA_VERSION,
            "items": [item.to_dict() for item in self.items],
            "cartBranchId": self.cart_branch_id,
            "selectedBranch": self.selected_branch.to_dict() if self.selected_branch else None,
            "serviceType": self.service_type.value,
            "deliveryDetails": self.delivery_details.to_dict() if self.delivery_details else None,
            "takeawayDetails": self.takeaway_details.to_dict() if self.takeaway_details else None,
            "specialInstructions": self.special_instructions,
            "selectedAllergenIds": list(self.selected_allergen_ids),
            "splitBillMode": self.split_bill_mode.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CartState":
        """Rebuild a state written by ``to_dict``.

        Raises:
            CartStateSchemaError: on an unknown schema version or a body
                that does not match it.
        """
        if not isinstance(data, Mapping):
            raise CartStateSchemaError(f"Cart state must be an object, got {type(data).__name__}")
        version = data.get("schemaVersion")
        if version != SCHEMA_VERSION:
            raise CartStateSchemaError(
                f"Unsupported cart state schema version {version!r} (expected {SCHEMA_VERSION})"
            )
        try:
            branch = data.get("selectedBranch")
            delivery = data.get("deliveryDetails")
            takeaway = data.get("takeawayDetails")
            return cls(
                items=[CartItem.from_dict(item) for item in data.get("items") or []],
                cart_branch_id=data.get("cartBranchId"),
                selected_branch=Branch.from_state(branch) if branch else None,
                service_type=ServiceType.parse(data.get("serviceType", ServiceType.DINE_IN)),
                delivery_details=DeliveryDetails.from_dict(delivery) if delivery else None,
                takeaway_details=TakeawayDetails.from_dict(takeaway) if takeaway else None,
                special_instructions=data.get("specialInstructions") or "",
                selected_allergen_ids=list(data.get("selectedAllergenIds") or []),
                split_bill_mode=SplitBillMode.parse(data.get("splitBillMode", SplitBillMode.EQUALITY)),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise CartStateSchemaError(f"Malformed cart state: {exc}") from exc


class PersistenceAdapter(ABC):
    """Storage boundary for ``CartState``."""

    @abstractmethod
    def save(self, state: CartState) -> None:
        ...

    @abstractmethod
    def load(self) -> Optional[CartState]:
        ...


class InMemoryPersistenceAdapter(PersistenceAdapter):
    """Keeps the serialised state in memory; one instance per session."""

    def __init__(self) -> None:
        self._data: Optional[Dict[str, Any]] = None

    def save(self, state: CartState) -> None:
        self._data = json.loads(json.dumps(state.to_dict()))

    def load(self) -> Optional[CartState]:
        if self._data is None:
            return None
        return CartState.from_dict(self._data)


class JsonFilePersistenceAdapter(PersistenceAdapter):
    """Stores the state as a JSON document on disk."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def save(self, state: CartState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(state.to_dict(), indent=2), encoding="utf-8")

    def load(self) -> Optional[CartState]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise CartStateSchemaError(f"Cart state file {self.path} is not valid JSON") from exc
        return CartState.from_dict(data)


class MongoCartStateRepository(PersistenceAdapter):
    """MongoDB-backed cart state, one document per storage key."""

    def __init__(
        self,
        url: Optional[str] = None,
        db_name: Optional[str] = None,
        collection: Optional[str] = None,
        storage_key: Optional[str] = None,
        config: Optional[Config] = None,
    ) -> None:
        # Load config with .env file explicitly
        config = config or Config(".env")

        self._url = url or config.get("mongo_url")
        self._db = db_name or config.get("mongo_db")
        self._collection = collection or config.get("mongo_collection")
        self._storage_key = storage_key or config.get("storage_key")
        self._timeout_ms = config.get("mongo_timeout_ms", 5000)
        if not self._url:
            raise ValueError("DB_CONNECTION_URL is required")
        self._client: Optional[MongoClient] = None

    def __enter__(self) -> "MongoCartStateRepository":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    def connect(self) -> None:
        if self._client is None:
            self._client = MongoClient(self._url, serverSelectionTimeoutMS=self._timeout_ms)

    def disconnect(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _coll(self):
        if self._client is None:
            self.connect()
        return self._client[self._db][self._collection]

    def save(self, state: CartState) -> None:
        document = {"_id": self._storage_key, **state.to_dict()}
        self._coll().replace_one({"_id": self._storage_key}, document, upsert=True)
        logger.debug(f"Saved cart state under {self._storage_key}")

    def load(self) -> Optional[CartState]:
        document = self._coll().find_one({"_id": self._storage_key})
        if not document:
            return None
        document.pop("_id", None)
        return CartState.from_dict(document)
