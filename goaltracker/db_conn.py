# db_conn.py

from mysql.connector import pooling
from mysql.connector.errors import Error, PoolError
from config import DB_CONFIG, DB_POOL_SIZE
from .errors import ConnectivityError
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Columns each record set exposes, plus the ones needing type conversion
TABLES = {
    "goals": {
        "columns": ["id", "user_id", "title", "description", "priority", "progress",
                    "impact", "type", "parent_goal_id", "created_at", "updated_at"],
        "bool": [],
        "json": [],
    },
    "tasks": {
        "columns": ["id", "user_id", "title", "description", "estimated_time", "impact_score",
                    "priority", "completed", "in_progress", "goal_id", "created_at", "updated_at"],
        "bool": ["completed", "in_progress"],
        "json": [],
    },
    "achievements": {
        "columns": ["id", "user_id", "title", "description", "earned", "earned_date", "created_at"],
        "bool": ["earned"],
        "json": [],
    },
    "milestones": {
        "columns": ["id", "user_id", "title", "description", "due_date", "reward", "progress",
                    "created_at", "updated_at"],
        "bool": [],
        "json": [],
    },
    "user_preferences": {
        "columns": ["id", "user_id", "personality", "preferences", "goals", "motivators",
                    "streak_current", "streak_best", "streak_last_updated", "created_at", "updated_at"],
        "bool": [],
        "json": ["personality", "preferences", "goals", "motivators"],
    },
    "ai_recommendations": {
        "columns": ["id", "user_id", "task_id", "recommendation_type", "content", "reasoning",
                    "created_at"],
        "bool": [],
        "json": [],
    },
}

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS goals (
        id VARCHAR(36) PRIMARY KEY,
        user_id VARCHAR(255) NOT NULL,
        title VARCHAR(255) NOT NULL,
        description TEXT,
        priority VARCHAR(10) DEFAULT 'medium',
        progress INT DEFAULT 0,
        impact INT DEFAULT 0,
        type VARCHAR(20) DEFAULT 'medium-term',
        parent_goal_id VARCHAR(36) NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP,
        INDEX idx_goals_user (user_id),
        FOREIGN KEY (parent_goal_id) REFERENCES goals(id) ON DELETE SET NULL
    ) ENGINE=InnoDB
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id VARCHAR(36) PRIMARY KEY,
        user_id VARCHAR(255) NOT NULL,
        title VARCHAR(255) NOT NULL,
        description TEXT,
        estimated_time INT DEFAULT 0,
        impact_score INT DEFAULT 0,
        priority VARCHAR(10) DEFAULT 'medium',
        completed BOOLEAN DEFAULT FALSE,
        in_progress BOOLEAN DEFAULT FALSE,
        goal_id VARCHAR(36) NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP,
        INDEX idx_tasks_user (user_id),
        FOREIGN KEY (goal_id) REFERENCES goals(id) ON DELETE SET NULL
    ) ENGINE=InnoDB
    """,
    """
    CREATE TABLE IF NOT EXISTS achievements (
        id VARCHAR(36) PRIMARY KEY,
        user_id VARCHAR(255) NOT NULL,
        title VARCHAR(255) NOT NULL,
        description TEXT,
        earned BOOLEAN DEFAULT FALSE,
        earned_date DATE NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        INDEX idx_achievements_user (user_id)
    ) ENGINE=InnoDB
    """,
    """
    CREATE TABLE IF NOT EXISTS milestones (
        id VARCHAR(36) PRIMARY KEY,
        user_id VARCHAR(255) NOT NULL,
        title VARCHAR(255) NOT NULL,
        description TEXT,
        due_date DATE NULL,
        reward TEXT,
        progress INT DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP,
        INDEX idx_milestones_user (user_id)
    ) ENGINE=InnoDB
    """,
    """
    CREATE TABLE IF NOT EXISTS user_preferences (
        id VARCHAR(36) PRIMARY KEY,
        user_id VARCHAR(255) NOT NULL UNIQUE,
        personality JSON,
        preferences JSON,
        goals JSON,
        motivators JSON,
        streak_current INT DEFAULT 0,
        streak_best INT DEFAULT 0,
        streak_last_updated DATE NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP
    ) ENGINE=InnoDB
    """,
    """
    CREATE TABLE IF NOT EXISTS ai_recommendations (
        id VARCHAR(36) PRIMARY KEY,
        user_id VARCHAR(255) NOT NULL,
        task_id VARCHAR(36) NULL,
        recommendation_type VARCHAR(20) NOT NULL,
        content TEXT NOT NULL,
        reasoning TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        INDEX idx_recommendations_user (user_id)
    ) ENGINE=InnoDB
    """,
]

# Global pool reused across requests
POOL = None


def _build_pool():
    return pooling.MySQLConnectionPool(pool_name="goaltracker-pool", pool_size=DB_POOL_SIZE, **DB_CONFIG)


def init_tables(cnx):
    """Initialize database tables if they don't exist."""
    try:
        with cnx.cursor() as cursor:
            for statement in SCHEMA:
                cursor.execute(statement)
        cnx.commit()
        logger.info("Database tables initialized successfully")
    except Error as e:
        logger.error(f"Error initializing tables: {e}")
        raise


def get_conn():
    """Get a pooled connection, creating the pool (and tables) on first use."""
    global POOL
    if POOL is None:
        logger.info("Establishing database connection pool...")
        pool = _build_pool()
        cnx = pool.get_connection()
        try:
            init_tables(cnx)
        finally:
            cnx.close()
        POOL = pool
    try:
        cnx = POOL.get_connection()
    except PoolError as e:
        logger.warning(f"Connection pool exhausted: {e}")
        raise ConnectivityError("The server is busy. Please try again in a moment.") from e
    try:
        cnx.ping(reconnect=True, attempts=1, delay=0)  # ensure alive
        return cnx
    except Error as e:
        # Rebuild pool on error (rare)
        logger.warning(f"Connection pool unhealthy, rebuilding: {e}")
        try:
            cnx.close()
        except Error as close_error:
            logger.warning(f"Could not return dead connection to the pool: {close_error}")
        POOL = _build_pool()
        return POOL.get_connection()


def close_pool():
    """Drop the pool; pooled connections close when garbage collected."""
    global POOL
    if POOL is not None:
        logger.info("Database pool released")
    POOL = None
