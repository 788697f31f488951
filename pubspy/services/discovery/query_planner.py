"""
Planejamento de queries de busca para um Publisher ID.
"""

from typing import List

from pubspy.core.constants import ADS_TXT_FILENAME, CLIENT_ATTRIBUTE_NAMES
from pubspy.core.identifiers import strip_prefix, validate_identifier


def plan_queries(identifier: str, extended: bool = True) -> List[str]:
    """
    Constrói a lista ordenada de queries, da mais seletiva para a menos.

    A ordem importa: o gateway executa em sequência e pode parar ao atingir
    o limiar de volume, então as queries mais distintivas vêm primeiro.

    Ordem:
    1. ID exato entre aspas
    2. Atributos de cliente (data-ad-client, google_ad_client) + ID
    3. Nome do arquivo de autorização (ads.txt) + ID
    4. ID sem prefixo + "adsense"
    5. (extended) Variações com marcadores de tag de anúncio

    Raises:
        InvalidIdentifierError: ID fora do formato ca-pub-xxxxxxxxxxxxxxxx
    """
    pub_id = validate_identifier(identifier)
    digits = strip_prefix(pub_id)

    queries = [f'"{pub_id}"']
    queries.extend(f'"{attribute}" "{pub_id}"' for attribute in CLIENT_ATTRIBUTE_NAMES)
    queries.append(f'"{ADS_TXT_FILENAME}" "{pub_id}"')
    queries.append(f'"{digits}" "adsense"')

    if extended:
        queries.extend([
            f'"{pub_id}" "google_ad_slot"',
            f'"{pub_id}" "pagead2.googlesyndication.com"',
            f'"{digits}" "google-adsense"',
        ])

    return queries
