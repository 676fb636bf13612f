"""Market alert bot package.

Polls financial news feeds, keeps the market-moving headlines, scores them
for sentiment, and posts them to a Telegram channel.  Modules are kept small
so the classifier, the dedup store and the delivery path can be tested on
their own.
"""

__all__: list[str] = []
