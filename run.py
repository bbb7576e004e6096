# run.py
import os
from dotenv import load_dotenv
load_dotenv()

from clinpath_app_pkg import create_app

config_name = os.environ.get('FLASK_ENV', 'development')
app = create_app(config_name)
app.logger.info(f"Starting Clinical Pathway Monitor with '{config_name}' configuration.")

if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)))
