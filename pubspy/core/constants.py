"""
Constantes globais do PubSpy.

Este arquivo centraliza constantes que são usadas em múltiplos módulos.
Constantes específicas de cada módulo devem ficar em seus próprios arquivos.
"""

import re

# Versão do sistema
VERSION = "1.0.0"

# Formato canônico do Publisher ID: ca-pub- + 16 dígitos
IDENTIFIER_PREFIX = "ca-pub-"
IDENTIFIER_DIGITS = 16
IDENTIFIER_REGEX = re.compile(r"^ca-pub-\d{16}$")

# Nome do arquivo de autorização (IAB ads.txt)
ADS_TXT_FILENAME = "ads.txt"

# Domínios de sistemas de anúncio reconhecidos pelo emissor do ID.
# Entradas do ads.txt fora desta lista são parseadas mas ignoradas.
AUTHORIZED_AD_SYSTEM_DOMAINS = frozenset({
    "google.com",
    "google.co.uk",
    "google.de",
    "google.fr",
    "google.com.au",
    "google.ca",
    "googlesyndication.com",
    "doubleclick.net",
})

# Atributos HTML/JS que carregam o ID do publisher
CLIENT_ATTRIBUTE_NAMES = (
    "data-ad-client",
    "google_ad_client",
)

# Plataformas de alto tráfego irrelevantes para o discovery
# (aparecem nos resultados de busca mas nunca são o site do publisher)
EXCLUDED_DOMAINS = frozenset({
    # Redes Sociais
    "facebook.com",
    "instagram.com",
    "linkedin.com",
    "youtube.com",
    "twitter.com",
    "x.com",
    "tiktok.com",
    "pinterest.com",
    "reddit.com",
    "threads.net",

    # Código / Q&A (snippets de código citam IDs de terceiros)
    "github.com",
    "gist.github.com",
    "stackoverflow.com",
    "stackexchange.com",
    "pastebin.com",

    # Serviços Google
    "google.com",
    "support.google.com",
    "translate.google.com",
    "webcache.googleusercontent.com",
    "googlesyndication.com",
    "doubleclick.net",

    # Ferramentas de lookup de publisher IDs / diretórios de ads.txt
    "publicwww.com",
    "builtwith.com",
    "adstxt.guru",
    "spyonweb.com",
})

# Domínios de demonstração usados no resultado degradado (provedor indisponível).
# Nunca são misturados com resultados reais.
DEMO_DOMAINS = (
    ("example.com", "Example Domain"),
    ("example.org", "Example Domain (org)"),
    ("example.net", "Example Domain (net)"),
    ("iana.org", "Internet Assigned Numbers Authority"),
    ("w3.org", "World Wide Web Consortium"),
)

# Headers que imitam um navegador real
DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}
