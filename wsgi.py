from pricecompare import create_app

app = create_app()
