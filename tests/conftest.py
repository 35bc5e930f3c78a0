import pytest
from sqlalchemy.orm import sessionmaker

from contentbot.db.base import Base, make_engine
from contentbot.db import models
from contentbot.services.statuses import ArticleStatus


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def make_article(db):
    """Create user -> project -> article rows and return the article id."""
    def _make(status=ArticleStatus.TO_GENERATE, title="How to brew coffee", project=None, **project_kwargs):
        if project is None:
            user = models.User(email=None)
            db.add(user)
            db.flush()
            project = models.Project(user_id=user.id, name="Blog", excluded_domains=[], **project_kwargs)
            db.add(project)
            db.flush()
        article = models.Article(project_id=project.id, title=title, keywords=["coffee"], status=status)
        db.add(article)
        db.commit()
        return article.id
    return _make
