from devshare.cli import app

app(prog_name="devshare")
