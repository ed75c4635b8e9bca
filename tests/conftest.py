from unittest.mock import MagicMock

import requests


def make_response(json_data=None, text='', status=200, cookies=None, content=b''):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = json_data
    response.text = text
    response.content = content
    response.cookies = cookies or {}
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f'{status} Error')
    return response


