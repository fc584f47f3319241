"""
Per-strategy engine state and its persisted JSON form.

The ledger stores one opaque JSON blob per strategy. Its shape depends on the
strategy type, so in memory it is modelled as a tagged union:

- SingleSideGridState: anchor price plus the ladder of paired buy/sell orders
- BidirectionalGridState: static price levels plus resting virtual orders
- NoState: strategies that keep nothing between ticks

Blob keys are camelCase. Decimals are written as strings and read back from
strings or JSON numbers. Keys the engine does not know about, at the top level
and inside each order or level entry, are carried through unchanged, and a
known field whose value did not change keeps the JSON form it was read with.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from papergrid.config import StrategyType
from papergrid.fills import TradeSide


def _dec(value: Any) -> Decimal:
    return Decimal(str(value))


def _opt_dec(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return _dec(value)


def _same_value(original: Any, encoded: Any) -> bool:
    """True if a freshly encoded value equals what was read from the blob."""
    if isinstance(encoded, str) and isinstance(original, (int, float, str)) and not isinstance(original, bool):
        try:
            return Decimal(str(original)) == Decimal(encoded)
        except InvalidOperation:
            return original == encoded
    return type(original) is type(encoded) and original == encoded


def _split(data: dict, keys: tuple) -> tuple[dict, dict]:
    """Split a blob entry into (unknown keys, raw values of known keys)."""
    extra = {k: v for k, v in data.items() if k not in keys}
    raw = {k: v for k, v in data.items() if k in keys}
    return extra, raw


def _merge(extra: dict, raw: dict, encoded: dict) -> dict:
    data = dict(extra)
    for key, value in encoded.items():
        if key in raw and _same_value(raw[key], value):
            data[key] = raw[key]
        else:
            data[key] = value
    return data


@dataclass
class GridOrder:
    """
    A single-side grid buy and its paired take-profit sell.

    buy_price is the price the buy executed at; grid_price is the dip level
    it was bought for. Orders written before grid_price existed use their
    buy price as level.
    """
    buy_price: Decimal
    sell_price: Decimal
    btc_amount: Decimal
    filled: bool = False
    # Dedup key: one open order per dip level, compared via level_price
    grid_price: Optional[Decimal] = None
    extra: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    _KEYS = ('buyPrice', 'sellPrice', 'btcAmount', 'filled', 'gridPrice')

    @property
    def level_price(self) -> Decimal:
        return self.grid_price if self.grid_price is not None else self.buy_price

    def to_dict(self) -> dict:
        data = {
            'buyPrice': str(self.buy_price),
            'sellPrice': str(self.sell_price),
            'btcAmount': str(self.btc_amount),
            'filled': self.filled,
        }
        if self.grid_price is not None:
            data['gridPrice'] = str(self.grid_price)
        elif 'gridPrice' in self.raw:
            data['gridPrice'] = None
        return _merge(self.extra, self.raw, data)

    @classmethod
    def from_dict(cls, data: dict) -> "GridOrder":
        extra, raw = _split(data, cls._KEYS)
        return cls(
            buy_price=_dec(data['buyPrice']),
            sell_price=_dec(data['sellPrice']),
            btc_amount=_dec(data['btcAmount']),
            filled=bool(data.get('filled', False)),
            grid_price=_opt_dec(data.get('gridPrice')),
            extra=extra,
            raw=raw,
        )


@dataclass
class GridLevel:
    """A price level of the bidirectional ladder."""
    price: Decimal
    has_buy_order: bool = False
    has_sell_order: bool = False
    extra: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    _KEYS = ('price', 'hasBuyOrder', 'hasSellOrder')

    def to_dict(self) -> dict:
        return _merge(self.extra, self.raw, {
            'price': str(self.price),
            'hasBuyOrder': self.has_buy_order,
            'hasSellOrder': self.has_sell_order,
        })

    @classmethod
    def from_dict(cls, data: dict) -> "GridLevel":
        extra, raw = _split(data, cls._KEYS)
        return cls(
            price=_dec(data['price']),
            has_buy_order=bool(data.get('hasBuyOrder', False)),
            has_sell_order=bool(data.get('hasSellOrder', False)),
            extra=extra,
            raw=raw,
        )


@dataclass
class ActiveOrder:
    """A resting virtual order on a bidirectional ladder level."""
    order_id: str
    side: TradeSide
    price: Decimal
    btc_amount: Decimal
    grid_level: int
    filled: bool = False
    extra: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    _KEYS = ('id', 'type', 'price', 'btcAmount', 'gridLevel', 'filled')

    def to_dict(self) -> dict:
        return _merge(self.extra, self.raw, {
            'id': self.order_id,
            'type': str(self.side),
            'price': str(self.price),
            'btcAmount': str(self.btc_amount),
            'gridLevel': self.grid_level,
            'filled': self.filled,
        })

    @classmethod
    def from_dict(cls, data: dict) -> "ActiveOrder":
        extra, raw = _split(data, cls._KEYS)
        return cls(
            order_id=str(data['id']),
            side=TradeSide(data['type']),
            price=_dec(data['price']),
            btc_amount=_dec(data['btcAmount']),
            grid_level=int(data['gridLevel']),
            filled=bool(data.get('filled', False)),
            extra=extra,
            raw=raw,
        )


@dataclass
class SingleSideGridState:
    """Anchor and order ladder of a single-side grid."""
    initial_price: Optional[Decimal] = None
    grid_orders: list[GridOrder] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    _KEYS = ('initialPrice', 'gridOrders')

    @property
    def initialized(self) -> bool:
        return self.initial_price is not None

    def to_dict(self) -> dict:
        data = _merge(self.extra, self.raw, {
            'initialPrice': None if self.initial_price is None else str(self.initial_price),
        })
        data['gridOrders'] = [order.to_dict() for order in self.grid_orders]
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "SingleSideGridState":
        data = data or {}
        initial_price = _opt_dec(data.get('initialPrice'))
        # A zero anchor is treated as never anchored
        if initial_price is not None and initial_price == 0:
            initial_price = None
        extra, raw = _split(data, cls._KEYS)
        raw.pop('gridOrders', None)
        return cls(
            initial_price=initial_price,
            grid_orders=[GridOrder.from_dict(o) for o in data.get('gridOrders') or []],
            extra=extra,
            raw=raw,
        )


@dataclass
class BidirectionalGridState:
    """Price ladder and resting orders of a bidirectional grid."""
    grid_levels: Optional[list[GridLevel]] = None
    active_orders: list[ActiveOrder] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    _KEYS = ('gridLevels', 'activeOrders')

    @property
    def initialized(self) -> bool:
        return self.grid_levels is not None

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data['gridLevels'] = None if self.grid_levels is None else [lvl.to_dict() for lvl in self.grid_levels]
        data['activeOrders'] = [order.to_dict() for order in self.active_orders]
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "BidirectionalGridState":
        data = data or {}
        levels = data.get('gridLevels')
        return cls(
            grid_levels=None if levels is None else [GridLevel.from_dict(lvl) for lvl in levels],
            active_orders=[ActiveOrder.from_dict(o) for o in data.get('activeOrders') or []],
            extra={k: v for k, v in data.items() if k not in cls._KEYS},
        )


@dataclass
class NoState:
    """State of strategies that keep nothing between ticks."""
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return dict(self.extra)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "NoState":
        return cls(extra=dict(data or {}))


StrategyState = Union[SingleSideGridState, BidirectionalGridState, NoState]


def load_state(strategy_type: StrategyType, blob: Optional[dict]) -> StrategyState:
    """Decode a persisted state blob into the variant for strategy_type."""
    if strategy_type == StrategyType.SINGLE_SIDE_GRID:
        return SingleSideGridState.from_dict(blob)
    if strategy_type == StrategyType.BIDIRECTIONAL_GRID:
        return BidirectionalGridState.from_dict(blob)
    return NoState.from_dict(blob)


def dump_state(state: StrategyState) -> dict:
    """Encode a state variant into its JSON-compatible blob."""
    return state.to_dict()
