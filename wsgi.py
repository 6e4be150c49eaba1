from thesis_eval import create_app

app = create_app()
