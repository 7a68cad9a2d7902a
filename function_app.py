import logging

import azure.functions as func

from tvratings_service.blueprints import account_bp, catalog_bp

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

app = func.FunctionApp()

app.register_blueprint(catalog_bp)
app.register_blueprint(account_bp)
