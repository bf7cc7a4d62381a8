"""
GraphQL and REST request shapes on top of RequestExecutor.execute.
"""

from json import dumps as json_dumps
from typing import TYPE_CHECKING, Any, Mapping

import httpx

if TYPE_CHECKING:
    from .executor import RequestExecutor

JSON_HEADERS = {'Content-Type': 'application/json'}
BODYLESS_METHODS = frozenset({'GET', 'HEAD'})


async def gql(
    executor: 'RequestExecutor',
    source: str = None,
    variable_values: Mapping[str, Any] = None,
    operation_name: str = None,
    endpoint: str = None,
    name: str = None,
    options: Mapping[str, Any] = None,
    standard_keys: bool = False,
) -> Any:
    """Send a GraphQL document as a JSON POST body.

    By default the payload uses graphql-js argument names
    (source, variableValues, operationName); standard_keys switches to the
    query/variables names most servers read.
    """
    options = dict(options or {})

    if options.get('body') is None:
        if standard_keys:
            payload = {'query': source, 'variables': variable_values, 'operationName': operation_name}
        else:
            payload = {'source': source, 'variableValues': variable_values, 'operationName': operation_name}
        options['body'] = json_dumps({k: v for k, v in payload.items() if v is not None})

    return await executor.execute(
        endpoint,
        name=name,
        options=options,
        computed_headers=JSON_HEADERS,
    )


async def rest(
    executor: 'RequestExecutor',
    data: Any = None,
    endpoint: str = None,
    name: str = None,
    json: bool = True,
    only_response: bool = False,
    max_redirects: int = None,
    options: Mapping[str, Any] = None,
) -> Any:
    """Send data as a JSON body, or as query parameters for GET and HEAD."""
    options = dict(options or {})
    method = str(options.get('method') or executor.defaults.method).upper()

    if method in BODYLESS_METHODS:
        options.pop('body', None)
        if data:
            endpoint = str(httpx.URL(endpoint).copy_merge_params(data))
    elif options.get('body') is None and data is not None:
        options['body'] = json_dumps(data)

    return await executor.execute(
        endpoint,
        name=name,
        options=options,
        only_response=only_response,
        max_redirects=max_redirects,
        computed_headers=JSON_HEADERS if json else None,
    )
