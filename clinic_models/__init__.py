from clinic_models.db_storage import DBStorage

# Process-wide storage; create_app() binds it to the configured database.
storage = DBStorage()
