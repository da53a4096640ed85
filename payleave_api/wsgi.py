from payleave_api import create_app

app = create_app()
