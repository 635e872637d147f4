from open_tasks.cli.app import app

app()
