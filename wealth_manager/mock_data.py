MOCK_SECTORS = ["Technology", "Healthcare", "Finance", "Consumer", "Energy"]

MOCK_INDUSTRIES = ["Software", "Hardware", "Banking", "Retail", "Manufacturing"]

DEMO_PORTFOLIO = {
    "name": "Demo Portfolio",
    "description": "Sample holdings loaded at startup",
    "holdings": [
        {
            "symbol": "AAPL",
            "name": "Apple Inc.",
            "asset_type": "stock",
            "quantity": 10,
            "average_cost": 184.0,
        },
        {
            "symbol": "MSFT",
            "name": "Microsoft Corp.",
            "asset_type": "stock",
            "quantity": 5,
            "average_cost": 405.0,
        },
        {
            "symbol": "VTI",
            "name": "Vanguard Total Stock Market ETF",
            "asset_type": "etf",
            "quantity": 12,
            "average_cost": 280.0,
        },
        {
            "symbol": "CASH",
            "name": "Cash",
            "asset_type": "cash",
            "quantity": 1,
            "average_cost": 1000.0,
        },
    ],
}

CSV_TEMPLATE_ROWS = [
    {"symbol": "AAPL", "name": "Apple Inc.", "asset_type": "stock", "quantity": "10", "average_cost": "150.00"},
    {"symbol": "VTI", "name": "Vanguard Total Stock Market ETF", "asset_type": "etf", "quantity": "25", "average_cost": "220.50"},
    {"symbol": "CASH", "name": "Cash", "asset_type": "cash", "quantity": "1", "average_cost": "5000.00"},
]
