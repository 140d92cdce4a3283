import os

os.makedirs('logs', exist_ok=True)

bind = '0.0.0.0:9300'
workers = 4
accesslog = './logs/access.log'
timeout = 300
wsgi_app = 'cosmos_exporter.app:app'
