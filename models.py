from pony.orm import Database, Required, Optional, PrimaryKey, Json
from datetime import datetime
import uuid

db = Database()

class Registration(db.Entity):
    _table_ = 'eventsregistrations'
    id = PrimaryKey(uuid.UUID, default=uuid.uuid4)
    event_id = Required(str, index=True)
    event_title = Optional(str)
    application_id = Required(str, index=True)
    registration_email = Optional(str)
    is_team_entry = Optional(bool, default=True)
    details = Optional(Json)
    is_approved = Optional(str, nullable=True)
    created_at = Required(datetime, default=datetime.utcnow)
    updated_at = Optional(datetime, nullable=True)

def run_migrations(dsn=None, **kwargs):
    """
    Run manual migrations using psycopg2 directly.
    Columns added after the registration table first went live.
    """
    import psycopg2

    print("MIGRATIONS: Starting manual migrations...")
    try:
        if dsn:
            if 'sslmode=' not in dsn:
                separator = '&' if '?' in dsn else '?'
                dsn += f"{separator}sslmode=require"
            conn = psycopg2.connect(dsn, connect_timeout=10)
        else:
            conn = psycopg2.connect(
                user=kwargs.get('user'),
                password=kwargs.get('password'),
                host=kwargs.get('host'),
                database=kwargs.get('database'),
                sslmode='require',
                connect_timeout=10
            )

        conn.autocommit = True
        with conn.cursor() as cur:
            cur.execute("SELECT table_name FROM information_schema.tables WHERE table_schema = 'public'")
            tables = [t[0] for t in cur.fetchall()]

            if 'eventsregistrations' in tables:
                for column, ddl in (
                    ('updated_at', 'TIMESTAMP'),
                    ('is_approved', 'TEXT'),
                ):
                    try:
                        cur.execute(f'ALTER TABLE "eventsregistrations" ADD COLUMN IF NOT EXISTS "{column}" {ddl}')
                        print(f"MIGRATIONS: Applied/Checked eventsregistrations.{column}")
                    except Exception as e:
                        print(f"MIGRATIONS: warning (eventsregistrations.{column}): {e}")

        conn.close()
        return True, f"Migrations completed. Tables found: {tables}"
    except Exception as e:
        error_msg = f"Direct migration failed: {e}"
        print(f"MIGRATIONS: {error_msg}")
        return False, error_msg

def init_db(provider_or_url='postgres', safe_mode=True, **kwargs):
    dsn = None
    provider = provider_or_url

    # Check if first arg is a URL
    if provider_or_url.startswith('postgres://') or provider_or_url.startswith('postgresql://'):
        provider = 'postgres'
        dsn = provider_or_url
        if dsn.startswith('postgres://'):
            dsn = dsn.replace('postgres://', 'postgresql://', 1)

    if provider == 'postgres':
        success, msg = run_migrations(dsn, **kwargs)
        if not success:
            if safe_mode:
                print(f"WARNING: {msg} - Continuing startup in safe mode.")
            else:
                raise Exception(msg)

    try:
        if dsn:
            if 'sslmode=' not in dsn:
                separator = '&' if '?' in dsn else '?'
                dsn += f"{separator}sslmode=require"
            db.bind(provider='postgres', dsn=dsn)
        else:
            db.bind(provider=provider, **kwargs)

        db.generate_mapping(create_tables=True)
        print("init_db: PonyORM binding and mapping successful")
    except Exception as e:
        print(f"init_db: PonyORM binding failed: {e}")
        if not safe_mode:
            raise
