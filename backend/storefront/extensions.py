# Overview: Flask extension instances for database and migrations.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from sqlalchemy import event

db = SQLAlchemy()
migrate = Migrate()


def configure_sqlite_transactions(engine) -> None:
    """
    Let SQLAlchemy, not pysqlite, decide where transactions begin.

    pysqlite defers BEGIN until the first DML statement, which breaks
    SAVEPOINT nesting inside a unit of work. Disabling the driver's own
    transaction handling and emitting BEGIN ourselves restores it.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")
