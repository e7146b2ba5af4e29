"""
Asset service - registering, editing and removing investments.
"""

import logging
from typing import List, Optional

from models import Asset
from repositories.asset_repository import AssetRepository
from services.errors import AssetNotFoundError, ValidationError
from services.transactions import asset_lock

logger = logging.getLogger(__name__)


SUPPORTED_CURRENCIES = ("BRL", "USD")


def _check_name(name: Optional[str]) -> None:
    if name is not None and not name.strip():
        raise ValidationError("Asset name must not be empty", field="name")


def _check_currency(currency: Optional[str]) -> None:
    if currency is not None and currency.upper() not in SUPPORTED_CURRENCIES:
        raise ValidationError(
            f"Unsupported currency {currency!r}; expected one of {SUPPORTED_CURRENCIES}", field="currency"
        )


class AssetService:
    """Service for the asset catalogue."""

    @staticmethod
    def create_asset(
        name: str,
        investment_type: str = "Outros",
        broker: str = "Outras",
        currency: str = "BRL",
        symbol: Optional[str] = None
    ) -> Asset:
        """
        Register an investment.

        Raises:
            ValidationError: Empty name or unsupported currency
        """
        if name is None:
            raise ValidationError("Asset name is required", field="name")
        _check_name(name)
        _check_currency(currency)

        asset = AssetRepository.add(
            name=name.strip(),
            investment_type=investment_type,
            broker=broker,
            currency=currency,
            symbol=symbol or None,
        )
        logger.info(f"Created asset {asset.id}: {asset.name}")
        return asset

    @staticmethod
    def update_asset(
        asset_id: int,
        name: Optional[str] = None,
        investment_type: Optional[str] = None,
        broker: Optional[str] = None,
        currency: Optional[str] = None,
        symbol: Optional[str] = None
    ) -> Asset:
        """
        Edit an asset's descriptive fields. The transaction log and the
        stored position are left untouched.

        Raises:
            ValidationError: Empty name or unsupported currency
            AssetNotFoundError: Unknown asset
        """
        _check_name(name)
        _check_currency(currency)

        asset = AssetRepository.update(
            asset_id,
            name=name.strip() if name is not None else None,
            investment_type=investment_type,
            broker=broker,
            currency=currency,
            symbol=symbol,
        )
        if asset is None:
            raise AssetNotFoundError(asset_id)
        logger.info(f"Updated asset {asset_id}")
        return asset

    @staticmethod
    def delete_asset(asset_id: int) -> None:
        """
        Remove an asset with its transactions, prices, snapshots and position.
        Runs under the asset's write lock so no ledger write interleaves.

        Raises:
            AssetNotFoundError: Unknown asset
        """
        with asset_lock(asset_id):
            if not AssetRepository.delete(asset_id):
                raise AssetNotFoundError(asset_id)
        logger.info(f"Deleted asset {asset_id}")

    @staticmethod
    def list_assets() -> List[Asset]:
        return AssetRepository.get_all()
