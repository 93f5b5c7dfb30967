"""Shell commands exposing Lakeview functionalities.

Query
=====

``lakeview-query`` runs queries on datasets from the shell::

    lakeview-query data/flights/ --where "year = 2020" --group-by carrier \\
        --agg "avg_delay=mean:dep_delay" --sort=-avg_delay --limit 5

``--explain`` prints which files and columns would be read
instead of running the query.
"""
