from stackprobe.cli import app

app()
