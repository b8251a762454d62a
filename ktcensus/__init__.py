"""Census of Kotlin syntax feature usage across a corpus of repositories.

Typical usage:

```python
from ktcensus import KotlinCensus

census = KotlinCensus('/data/kotlin-corpus', max_repos=10)
census.run()
census.report()
```

Or from the command line:

```
ktcensus /data/kotlin-corpus -stats-only 10
```

"""

__version__ = '0.1.0'

from .core import KotlinCensus
from .report import Reporter
from .utils import logger
from . import sources
from . import analyzers

__all__ = [
    'KotlinCensus',
    'Reporter',
    'logger',
    'sources',
    'analyzers',
]
