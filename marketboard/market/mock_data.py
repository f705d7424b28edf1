"""Deterministic demo rows, served only when mock fallback is enabled."""

import math

from marketboard.market.models import Market
from marketboard.market.schemas import SparklinePoint, Stock
from marketboard.market.series import HOUR_MS

_US_ROWS = [
    ("NVDA", "NVIDIA Corporation", 850.20, 8.5),
    ("AAPL", "Apple Inc.", 175.50, 2.1),
    ("MSFT", "Microsoft Corporation", 420.30, 1.8),
    ("TSLA", "Tesla, Inc.", 210.00, 1.5),
    ("AMZN", "Amazon.com, Inc.", 180.50, 1.2),
    ("META", "Meta Platforms, Inc.", 500.00, 1.0),
    ("GOOGL", "Alphabet Inc.", 145.20, 0.8),
    ("AMD", "Advanced Micro Devices, Inc.", 160.00, 0.5),
    ("NFLX", "Netflix, Inc.", 610.20, 0.3),
    ("INTC", "Intel Corporation", 45.10, 0.1),
]

_AR_ROWS = [
    ("GGAL", "Grupo Financiero Galicia S.A.", 4500.50, 5.2),
    ("YPFD", "YPF S.A.", 21500.00, 4.8),
    ("PAMP", "Pampa Energía S.A.", 2800.75, 3.5),
    ("BMA", "Banco Macro S.A.", 6200.00, 2.1),
    ("TXAR", "Ternium Argentina S.A.", 980.00, 1.8),
    ("LOMA", "Loma Negra C.I.A.S.A.", 1550.00, 1.5),
    ("CEPU", "Central Puerto S.A.", 1200.00, 1.2),
    ("EDN", "Empresa Distribuidora y Comercializadora Norte S.A.", 850.50, 0.9),
    ("CRES", "Cresud S.A.C.I.F. y A.", 1100.25, 0.5),
    ("SUPV", "Grupo Supervielle S.A.", 480.00, 0.2),
]


def mock_sparkline(price: float, percent: float, now_ms: int, points: int = 20) -> list[SparklinePoint]:
    """Hourly line that starts at the implied open and ends exactly at ``price``."""
    start = price / (1 + percent / 100) if percent > -100 else price
    line = []
    for i in range(points):
        progress = i / points
        wobble = math.sin(i * 1.3) * price * 0.004
        line.append(
            SparklinePoint(
                timestamp=now_ms - (points - i) * HOUR_MS,
                value=round(start + (price - start) * progress + wobble, 4),
            )
        )
    line.append(SparklinePoint(timestamp=now_ms, value=price))
    return line


def mock_stocks(market: Market, now_ms: int) -> list[Stock]:
    rows = _US_ROWS if market == Market.US else _AR_ROWS
    stocks = [
        Stock(
            id=ticker,
            ticker=ticker,
            company_name=name,
            market=market,
            price=price,
            percent_change=percent,
            sparkline=mock_sparkline(price, percent, now_ms),
        )
        for ticker, name, price, percent in rows
    ]
    return sorted(stocks, key=lambda stock: stock.percent_change, reverse=True)
