from debo_api.cli import app

app()
