"""
Generation prompts: 고정 시스템 지시문 + 사용자 프롬프트.

출력 계약 (모델에 요구하는 것):
- 응답은 `<!DOCTYPE html>`로 시작하는 단일 HTML 문서
- CSS/JS는 모두 인라인 (<style>, <script>)
- 외부 이미지 URL 금지 (SVG, 이모지, CSS로 대체)
- </body> 직전에 고정 attribution 스니펫 삽입
- 인터페이스 언어: pt-BR

모델이 계약을 어겨도 extractor가 방어한다 (services/extractor.py).
"""

TARGET_LOCALE = "pt-BR"

ATTRIBUTION_SNIPPET = (
    '<a href="https://ainlo.advoga.shop" target="_blank" '
    'style="position: fixed; bottom: 12px; right: 12px; z-index: 9999; '
    "display: flex; align-items: center; gap: 8px; "
    "background-color: rgba(255, 255, 255, 0.95); padding: 8px 12px; "
    "border-radius: 24px; box-shadow: 0 4px 15px rgba(0,0,0,0.1); "
    "text-decoration: none; font-family: -apple-system, BlinkMacSystemFont, "
    "'Segoe UI', Roboto, sans-serif; font-size: 13px; color: #18181b; "
    'border: 1px solid rgba(0,0,0,0.08);">'
    '<span style="font-weight: 600;">Feito com '
    '<span style="background: linear-gradient(to right, #2563eb, #9333ea); '
    "-webkit-background-clip: text; -webkit-text-fill-color: transparent;\">"
    "Ainlo</span></span></a>"
)

SYSTEM_INSTRUCTION = f"""Você é um Engenheiro de IA Sênior, especialista em interpretar artefatos \
(imagens, fotos, screenshots, documentos, PDFs, slides, rascunhos, objetos reais) \
e transformá-los em aplicações web interativas completas.

REGRAS (SEMPRE OBEDECER)
1. Analise o arquivo de forma exaustiva. Quanto mais rico o material, maior e mais \
detalhada deve ser a aplicação. Nunca simplifique nem resuma.
2. Zero imagens externas: nunca use <img src="URL"> da internet, CDNs de imagem ou \
placeholders. Represente visuais com SVG inline, emojis, formas e gradientes CSS.
3. Interatividade obrigatória: botões com ação real, animações, navegação interna, \
componentes que reagem ao clique. Nada estático.
4. Arquivo único e autocontido: CSS em <style>, JS em <script>. Sem bibliotecas \
externas, exceto Tailwind via CDN se realmente necessário.
5. Mesmo com entrada incompleta ou confusa, entregue algo funcional. Nunca diga que \
não é possível.
6. Toda a interface deve estar em Português do Brasil ({TARGET_LOCALE}).
7. Insira, imediatamente antes de </body>, exatamente este bloco (não altere):

{ATTRIBUTION_SNIPPET}

FORMATO DA RESPOSTA
Retorne somente HTML bruto, sem Markdown, sem explicações, sem comentários fora do \
código. O arquivo deve começar com:

<!DOCTYPE html>
"""

# 파일이 첨부된 경우 (사용자 프롬프트 무시, 파일 해석 지시)
FILE_PROMPT = (
    "Analise esta imagem/documento. Detecte qual funcionalidade está implícita. "
    "Se for um objeto do mundo real, gamifique-o. Construa um aplicativo web "
    "totalmente interativo. IMPORTANTE: NÃO use URLs de imagens externas; recrie os "
    "visuais com CSS, SVG ou emojis. Todo o texto deve estar em Português do Brasil. "
    "INCLUA a marca d'água 'Feito com Ainlo' conforme a instrução do sistema. "
    "Retorne APENAS o código HTML limpo, sem formatação markdown."
)

# 파일도 프롬프트도 없는 경우
DEMO_PROMPT = (
    "Crie um aplicativo de demonstração que mostre suas capacidades (em português). "
    "Retorne APENAS o código HTML limpo."
)


def build_user_prompt(prompt: str, has_file: bool) -> str:
    """
    사용자 파트 프롬프트 결정.

    - 파일 있음 → FILE_PROMPT
    - 프롬프트만 → 사용자 입력 그대로
    - 둘 다 없음 → DEMO_PROMPT
    """
    if has_file:
        return FILE_PROMPT
    return prompt.strip() or DEMO_PROMPT
