from notification_sync.main import create_app

app = create_app()
