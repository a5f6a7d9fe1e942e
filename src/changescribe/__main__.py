from changescribe.cli import app

app(prog_name="changescribe")
