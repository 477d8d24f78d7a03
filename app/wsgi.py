from app.provledger import create_app

app = create_app()
