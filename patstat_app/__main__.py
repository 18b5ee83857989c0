from patstat_app.cli import app

app()
