from ats import create_app

app = create_app()
