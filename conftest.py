import os

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'spa_notify.test_settings')
