from secretstory.cli import app

app(prog_name="secretstory")
