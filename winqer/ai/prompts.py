"""WINQER — Prompt Templates.

Prompts are written in the language the output is read in: the store
analysis, banner, caption and strategy prompts are Japanese, while the
creative-director and campaign prompts ask for Japanese copy in English.
"""

import json
from typing import Any, Dict, List, Optional

UNSET = "未指定"


# ── Store analysis (Meta + GA4 → operator report) ──

STORE_ANALYSIS_PROMPT = """あなたは中小店舗向けの広告運用に特化したプロフェッショナル広告運用AIです。

本ツールでは、Meta広告（Facebook/Instagram）のAPIデータと、
GA4の最新データを用いて「相場推定」「異常検知」「原因分析」「改善施策」を自動生成します。

※Meta Ads API・GA4 APIの呼び出しはシステムが行い、あなたには数値のみ渡します。
※Meta側のCVは広告マネージャーの「結果」欄を正として扱ってください。
※GA4側のCVはユーザーが入力したイベント名を基準とします。

--------------------------
■ 人が入力する情報（コンテキスト）
【業種】{industry}
【地域】{region}
【広告形式】{ad_format}        （静止画 / 動画 / UGC / カルーセル など）
【広告目的】{ad_objective}        （LP誘導 / 予約獲得 / LINE登録 など）
【ターゲット属性】{target_audience}    （例：25〜39歳女性、主婦層、20代前半など）

【備考・特記事項】
{remarks}

▼CV設定（案件ごとに自由に設定可能）
【CVの名前】{cv_label}
【GA4のCVイベント名】{ga4_cv_event}
※Meta広告側のCVは広告マネージャーの「結果欄」で算出された数値を使用します。

--------------------------
■ Meta Ads API（システムが取得し、あなたに数値として渡す項目）

【Meta側（結果欄と同じ値を使用）】
- impressions: {impressions}
- clicks: {clicks}
- ctr: {ctr}%
- cpc: {cpc}
- spend: {spend}
- conversions（結果欄の値をそのまま使用）: {meta_cv}
- cpa: {meta_cpa}    ※ meta_spend ÷ meta_cv

必要に応じて以下も利用可能：
- reach: (データなし)
- frequency: (データなし)

--------------------------
■ GA4 Data API（システムが取得して渡す項目）

▼対象LPまたは対象サイト全体（同一期間）
- sessions: {sessions}
- users: {active_users}
- pageviews: {pageviews}
- engagement_rate: {engagement_rate}
- bounce_rate: {bounce_rate}

▼CV（ユーザー定義イベント）
- conversions（{ga4_cv_event} の回数）: {cv_count}
- conversion_rate（CVR）: {ga_cvr}%   ※ ga_cv ÷ ga_sessions

--------------------------
■ あなたが行う処理

### ① 現状整理（広告ファネル構造）
MetaとGA4の値から以下の流れで現状を要約してください：

1. 配信：imp / reach / frequency
2. クリック：click / ctr / cpc
3. LP滞在：sessions / engagement_rate / bounce_rate
4. CV：meta_cv（結果欄） / ga_cv（任意CVイベント）

どの段階が最も弱いかを明確に述べてください。

--------------------------
### ② 業種×地域×目的×形式に基づく“期待値レンジ”を推定
比較指標がなくても分析できるように、
あなたの知識に基づいて以下の「期待値レンジ」を推定してください：

- 想定CTRレンジ（%）
- 想定CPCレンジ（円）
- 想定CVRレンジ（%）
- 想定CPAレンジ（円）

※厳密でなくてよい。実務ベースのレンジでOK。
※地方や専門業種は「そもそも母数が少ない」などの補足も記載。

--------------------------
### ③ 実データとの比較分析
推定レンジとの比較で、各指標を4段階で評価してください：

- CTR：高い / 妥当 / 低い
- CPC：安い / 妥当 / 高い
- CVR：高い / 妥当 / 低い
- CPA：良い / 普通 / 悪い

そして、
**最も大きなボトルネックとなっている箇所**を特定してください。

--------------------------
### ④ 原因仮説（優先度順）
以下の観点から、原因を3〜6個提示してください：

- クリエイティブの質（訴求・構図・コピー）
- ターゲティング（年齢・地域・興味関心）
- 業種特性（競合の多さ・単価・シーズナリティ）
- LP改善ポイント（ファーストビュー・CTA・導線の不足）
- 学習フェーズや配信量による不安定性

各仮説に「なぜそう判断できるのか」を1〜2行で書いてください。

--------------------------
### ⑤ 改善施策（実務ベース）
実際にすぐ試せる改善案を記載：

■ クリエイティブ改善（最低3つ）
■ ターゲット修正案
■ LP改善案（構成レベルでOK）
■ 入札/予算戦略（増減の判断理由つき）
■ 必要なら計測チェック項目（MetaとGA4のCV差異が大きい場合など）

--------------------------
### ⑥ 総評と“次にやるべき1手”
最後に以下の形式でまとめてください：

【総評】
全体評価を1〜2文で要約

【次にやるべき1手】
もっとも費用対効果が高く、実装難易度が低い施策を1つだけ提示
"""


def build_store_analysis_prompt(
    context: Dict[str, Any], meta: Dict[str, Any], ga4: Dict[str, Any]
) -> str:
    """Fill the store analysis prompt; missing context reads as 未指定."""
    return STORE_ANALYSIS_PROMPT.format(
        industry=context.get("industry") or UNSET,
        region=context.get("region") or UNSET,
        ad_format=context.get("ad_format") or UNSET,
        ad_objective=context.get("ad_objective") or UNSET,
        target_audience=context.get("target_audience") or UNSET,
        remarks=context.get("remarks") or "特になし",
        cv_label=context["cv_label"],
        ga4_cv_event=context["ga4_cv_event"],
        **meta,
        **ga4,
    )


# ── Campaign analysis ──

OBJECTIVE_FOCUS = {
    "traffic": """
- **Goal**: Traffic & Store Visits.
- **Key Metrics**: CTR, LP Views, CPC.
- **Strategy**: Maximize clicks and ensure users land on the page.
""",
    "awareness": """
- **Goal**: Brand Awareness & Reach.
- **Key Metrics**: Impressions, CPM, Frequency, Reach.
- **Strategy**: Maximize cheap impressions while controlling frequency (don't annoy users).
- **Note**: Low CTR is acceptable if CPM is low.
""",
    "conversions": """
- **Goal**: Conversions (Sales/Leads).
- **Key Metrics**: CPA (Cost Per Action), ROAS (if applicable), Volume.
- **Strategy**: Optimize for efficiency (CPA).
- **Note**: If ROAS is 0 (offline), focus on CPA and Volume.
""",
    "general": """
- **Goal**: General Performance.
- **Key Metrics**: CTR, CPC, CPM.
- **Strategy**: Balance efficiency and volume.
""",
}


def objective_focus(objective: str) -> str:
    """Focus block for a Meta campaign objective (substring match)."""
    objective = objective or ""
    if "TRAFFIC" in objective or "LINK_CLICKS" in objective:
        return OBJECTIVE_FOCUS["traffic"]
    if "AWARENESS" in objective or "BRAND" in objective:
        return OBJECTIVE_FOCUS["awareness"]
    if "SALES" in objective or "CONVERSIONS" in objective:
        return OBJECTIVE_FOCUS["conversions"]
    return OBJECTIVE_FOCUS["general"]


CAMPAIGN_ANALYSIS_PROMPT = """You are an expert Digital Marketer specializing in Meta Ads.
Analyze the following campaign performance data based on its **Objective: {objective}**.

**Analysis Context:**
{focus}
**General Rules:**
- **Ignore ROAS** if it is 0 (likely offline conversion).
- Provide specific, actionable advice.

Focus on:
1. **Primary Metric Optimization**: Based on the context above.
2. **Creative Performance**: Which ads are contributing to the goal?
3. **Audience/Targeting**: Is frequency too high? Is CPM too high?
4. **Budget Efficiency**: Where should budget be shifted?

Data:
{data}

Output JSON format:
{{
    "summary": "Brief summary of the campaign status (Japanese)",
    "suggestions": [
        {{ "title": "Actionable Title (Japanese)", "description": "Detailed explanation (Japanese)", "priority": "High" | "Medium" | "Low" }}
    ]
}}
"""


def build_campaign_prompt(objective: str, campaign_data: Dict[str, Any]) -> str:
    return CAMPAIGN_ANALYSIS_PROMPT.format(
        objective=objective,
        focus=objective_focus(objective),
        data=json.dumps(campaign_data, indent=2, ensure_ascii=False),
    )


# ── Ad creative (OpenAI copy + DALL-E) ──

CREATIVE_SYSTEM_PROMPT = (
    "You are an expert creative director and copywriter. Based on the provided ad "
    "analysis, generate a new ad concept that addresses the identified issues. "
    "Output JSON with 'headline', 'primary_text', and 'image_prompt'."
)

CREATIVE_SYSTEM_PROMPT_WITH_REFERENCE = (
    "You are an expert creative director and copywriter. Based on the provided ad "
    "analysis and reference banner image, generate a new ad concept that addresses "
    "the identified issues while maintaining a similar visual style to the reference. "
    "Output JSON with 'headline', 'primary_text', and 'image_prompt'."
)

REFERENCE_STYLE_SUFFIX = (
    "\n\nStyle reference: Match the visual style, color palette, and design "
    "aesthetic of the provided reference image."
)


def build_creative_prompt(
    analysis: str,
    store_url: Optional[str] = None,
    store_info: str = "",
    has_reference: bool = False,
) -> str:
    parts = [f"Analysis Result:\n{analysis}"]
    if store_info:
        parts.append(f"Store Information (from {store_url}):\n{store_info}")
    if has_reference:
        parts.append(
            "A reference banner image has been provided. Please analyze its style, "
            "color scheme, layout, and overall aesthetic to inform your new banner design."
        )
    colour = " (matching the reference)" if has_reference else ""
    parts.append(
        "Task: Generate a new ad concept (Headline in Japanese, Primary Text in Japanese, "
        "and detailed DALL-E 3 Image Prompt in English) that improves upon the current "
        "performance described in the analysis. The image prompt should be highly "
        "detailed and visual, specifying:\n"
        "- Layout and composition\n"
        f"- Color scheme{colour}\n"
        "- Typography style\n"
        "- Key visual elements\n"
        "- Overall mood and tone"
    )
    return "\n\n".join(parts)


# ── Banner prompt (Gemini) ──

BANNER_PROMPT = """あなたは「バナー用プロンプト設計AI」です。

入力として以下の情報が与えられます：
- analysisText: 店舗のAI分析結果（強み・悩み・訴求ポイントなど）
- storeInfo: 店舗URLから抽出した情報（店名、サービス内容、コンセプトなど）
- referenceStyleDescription: 参考バナーの見た目の特徴（色・レイアウト・雰囲気などの要約）

あなたの仕事は、
「画像生成AIに渡すためのプロンプト」と
「バナーに載せるテキスト」を設計することです。

出力は必ず **JSON形式のみ** とし、説明文は一切書かないでください。
形式は以下に従ってください：

{{
  "prompt_for_image_model": "ここに画像生成用プロンプト（英語で200ワード以内）",
  "headline": "メイン見出し（日本語）",
  "subHeadline": "サブ見出し（日本語）",
  "body": "短い本文（日本語。2文以内）",
  "cta": "CTAボタンのテキスト（日本語）"
}}

制約：

- 画像生成用のプロンプトには **エンジン名は絶対に含めない** でください。
- ブランド・店舗名は storeInfo から適切に抽出し、必要な場合のみプロンプトに含めてください。
- "Emphasize this", "IMPORTANT", "This is for AI" のようなメタな文言は入れないでください。
- prompt_for_image_model には以下を含めてください：
  - バナーの用途（例: Instagram post image for a beauty salon promotion）
  - 画像の比率や構図（例: 1080x1080 square format, centered composition）
  - カラートーン（例: soft pastel pink and beige, clean and modern）
  - 参考スタイルの要約（referenceStyleDescription を英語にして要約）
  - ターゲット（例: women in their 30s–40s who care about natural nail health）
  - 必要な要素（例: close-up of natural nails, soft lighting, clean background）

- headline / subHeadline / body / cta は **日本語** で出力し、
  analysisText と storeInfo の内容をもとに、実際に使えるテキストにしてください。
- 全体として、「Instagram投稿でCV獲得を目的としたシンプルで訴求力のあるバナー」を意識してください。

## 入力情報

### analysisText (AI分析結果):
{analysis}

### storeInfo (店舗情報):
{store_info}

### referenceStyleDescription (参考バナーのスタイル):
{reference}

上記の情報を基に、JSON形式でプロンプトとバナーテキストを出力してください。"""

REFERENCE_DESCRIPTION = (
    "User has provided a reference banner image. The generated prompt should maintain "
    "similar visual style, color scheme, layout structure, and overall design aesthetic "
    "as the reference."
)

BANNER_NOTE = "このプロンプトを画像生成AIにコピー&ペーストして画像生成してください。"


def build_banner_prompt(analysis: str, store_info: str = "", reference: str = "") -> str:
    return BANNER_PROMPT.format(
        analysis=analysis,
        store_info=store_info or "(店舗URL未提供)",
        reference=reference
        or "(参考画像未提供 - 一般的な広告バナーのベストプラクティスに従ってください)",
    )


# ── Instagram captions ──

CAPTION_SYSTEM_PROMPT = """あなたは「売上に直結する言葉を紡ぐプロのInstagramコピーライター」です。
提供された情報（店舗データ・戦略）を元に、ターゲットの心を動かし、予約や来店という「行動」を引き出すキャプションを作成してください。

## 入力変数（※値が「未設定」の場合は、業種や店名から最適な内容を推測して補完すること）
- 店名: {store_name}
- 業種: {industry}
- 地域: {region}
- ターゲット層: {demographics}
- ターゲットの悩み: {pain_points}
- ブランドの強み (USP): {strengths}
- 目指すブランドイメージ: {desired_image}
- NG表現: {ng_expressions}

## 執筆ルール（絶対遵守）
1. **「未設定」の自動補完**: 上記の変数が「未設定」や「一般層」などの抽象的な値の場合、指定された「業種」と「地域」から論理的に考えられる「具体的な悩み」や「魅力」を勝手に想像して文章に盛り込むこと。
2. **構成フレームワーク**: 全ての投稿案で以下の構成を守ること。
   - 【フック】1行目で読み手の足を止める（挨拶禁止。「〜な方へ」「実は〜」などで始める）。
   - 【共感】ターゲットの悩み（Pain Points）に寄り添う。
   - 【解決】自社の強み（USP）がどう解決するか提示する。
   - 【誘導】最後に明確なアクション（予約、保存、DM）を促す。
3. **トーン＆マナー**:
   - 専門用語を使わず、親しみやすい口語体で書く。
   - 適度な絵文字と改行を使い、スマホでの可読性を高める。
   - 「宣伝臭」を消し、「役立つ情報」や「素敵な提案」として届ける。

## 出力要件
- 3つの異なる訴求軸（バリエーション）で作成し、JSON形式で出力してください。
  - パターンA: **共感・悩み解決型**（コンプレックスや不便の解消を強調）
  - パターンB: **ベネフィット・憧れ型**（利用後の素敵な未来や、空間の良さを強調）
  - パターンC: **短文・インパクト型**（画像内の文字を補足する、勢いのある短めな文章）
- ハッシュタグは「地域名×業種」「悩み系」「ビッグワード」をバランスよく15個程度選定すること。

## 出力フォーマット（JSON）
JSONのキーは必ず "captions" という配列を含めてください。
{{
  "captions": [
    {{
      "title": "案のタイトル（例: 共感型）",
      "caption": "投稿本文...",
      "hashtags": "#タグ..."
    }}
  ]
}}
"""

CAPTION_IMAGE_INSTRUCTION = (
    "この画像を解析し、その視覚情報（雰囲気、写っているもの、色味など）を"
    "キャプションに自然に盛り込んでください。"
)

DEFAULT_TONE = "店舗の雰囲気に合わせる"
NOT_SET = "未設定"


def build_caption_system_prompt(
    store_name: str,
    store_industry: Optional[str],
    store_address: Optional[str],
    input_data: Dict[str, Any],
    output_data: Dict[str, Any],
) -> str:
    """Caption prompt filled from the store and its saved strategy."""
    persona = output_data.get("persona") or {}
    swot = output_data.get("swot") or {}
    brand = input_data.get("brand") or {}
    goal = input_data.get("goal") or {}
    comparison = input_data.get("comparison") or {}

    strengths = swot.get("strengths")
    if isinstance(strengths, list):
        strengths = ", ".join(str(s) for s in strengths)

    return CAPTION_SYSTEM_PROMPT.format(
        store_name=store_name,
        industry=input_data.get("industry") or store_industry or NOT_SET,
        region=store_address or NOT_SET,
        demographics=persona.get("demographics") or goal.get("target_audience") or "一般層",
        pain_points=persona.get("pain_points") or NOT_SET,
        strengths=strengths or comparison.get("differentiation_points") or NOT_SET,
        desired_image=brand.get("desired_image") or NOT_SET,
        ng_expressions=brand.get("ng_expressions") or "特になし",
    )


def build_caption_user_content(
    topic: str, tone: Optional[str], image: Optional[str] = None
) -> List[Dict[str, Any]]:
    content: List[Dict[str, Any]] = [
        {"type": "text", "text": f"トピック: {topic}\n指定トーン: {tone or DEFAULT_TONE}"}
    ]
    if image:
        content.append({"type": "image_url", "image_url": {"url": image, "detail": "high"}})
        content.append({"type": "text", "text": CAPTION_IMAGE_INSTRUCTION})
    return content


# ── Marketing strategy ──

STRATEGY_SYSTEM_PROMPT = """あなたは、**「個人経営の店舗ビジネス（美容室、エステ、整体など）専門の凄腕マーケティングコンサルタント」**です。
クライアントは、マーケティング知識のない1人オーナーです。

**【最重要ミッション】**
「一般論」や「教科書的な説明」は一切不要です。
**「明日からそのまま使える」「具体的で泥臭い」** 実践的な戦略を提案してください。

**【禁止ワード・表現】**
❌ 高い技術力、親しみやすいスタッフ、アットホームな雰囲気
❌ ブランド認知度が低い、市場の拡大、経済状況の変化
❌ 視覚的魅力、教育・信頼構築、エンゲージメント
❌ 初回限定オファー、スムーズな導線、差別化を図る

**【出力ルールの徹底】**
1. **SWOT分析**: 経営分析ではなく、**「広告のネタになるかどうか」**だけで書いてください。「看板が出せない」「電話に出られない」など、リアルな弱みを書いてください。
2. **ペルソナ**: 「30代女性」のような属性ではなく、**「38歳、パート週4、子供2人、最近夫と会話がない」** レベルまで具体化した**「たった1人の実在しそうな人物」**を描いてください。
3. **訴求ポイント**: 必ず**「キャッチコピー（そのまま使える日本語）」**とセットで提案してください。
4. **広告媒体**: 「なぜInstagramだけでいいのか」「なぜチラシは不要なのか」まで断定してください。
5. **Instagram投稿案**: 「テーマ」だけでなく、**「そのままコピペして投稿できる本文」**を4つ作成してください。絵文字も適度に使ってください。
6. **空欄禁止**: 入力情報が不足している場合でも、**「プロの推測」**で最も効果的と思われる内容を補完して埋めてください。空文字（""）は禁止です。

**【JSON出力フォーマット】**
必ず以下のJSON形式で出力してください。
{
  "swot": {
    "strengths": ["具体的な強み1", "具体的な強み2", "具体的な強み3"],
    "weaknesses": ["具体的な弱み1", "具体的な弱み2", "具体的な弱み3"],
    "opportunities": ["具体的な機会1", "具体的な機会2", "具体的な機会3"],
    "threats": ["具体的な脅威1", "具体的な脅威2"]
  },
  "stp": {
    "segmentation": "具体的なセグメント",
    "targeting": "具体的なターゲット",
    "positioning": "具体的なポジション"
  },
  "persona": {
    "demographics": "年齢、家族構成、職業、年収など（超具体的）",
    "psychographics": "悩み、価値観、口癖、生活リズム",
    "pain_points": "夜も眠れないほどの悩み、具体的な身体の不調",
    "needs": "喉から手が出るほど欲しい解決策"
  },
  "appeal_points": [
    { "title": "訴求ポイント1", "ad_copy_example": "そのまま使える広告コピー", "reasoning": "なぜこれが刺さるのかの泥臭い理由" },
    { "title": "訴求ポイント2", "ad_copy_example": "そのまま使える広告コピー", "reasoning": "なぜこれが刺さるのかの泥臭い理由" },
    { "title": "訴求ポイント3", "ad_copy_example": "そのまま使える広告コピー", "reasoning": "なぜこれが刺さるのかの泥臭い理由" }
  ],
  "recommended_media": [
    { "name": "媒体名1", "reasoning": "なぜこれだけでいいのか、他が不要な理由" },
    { "name": "媒体名2", "reasoning": "なぜこれだけでいいのか、他が不要な理由" }
  ],
  "strategy_summary": {
    "target_cpa": "具体的な金額（例：3,000円）",
    "estimated_budget": "具体的な金額（例：月5万円）",
    "advice": "辛口かつ具体的なアドバイス"
  },
  "funnel_design": {
    "steps": [
      { "step": "認知", "role": "役割", "content_idea": "具体的なコンテンツ案" },
      { "step": "興味", "role": "役割", "content_idea": "具体的なコンテンツ案" },
      { "step": "検討", "role": "役割", "content_idea": "具体的なコンテンツ案" },
      { "step": "行動", "role": "役割", "content_idea": "具体的なコンテンツ案" }
    ]
  },
  "instagram_posts": [
    { "title": "投稿1のタイトル", "body": "そのまま投稿できる本文（絵文字あり）", "purpose": "投稿の狙い", "reasoning": "なぜこれが刺さるか" },
    { "title": "投稿2のタイトル", "body": "そのまま投稿できる本文（絵文字あり）", "purpose": "投稿の狙い", "reasoning": "なぜこれが刺さるか" },
    { "title": "投稿3のタイトル", "body": "そのまま投稿できる本文（絵文字あり）", "purpose": "投稿の狙い", "reasoning": "なぜこれが刺さるか" },
    { "title": "投稿4のタイトル", "body": "そのまま投稿できる本文（絵文字あり）", "purpose": "投稿の狙い", "reasoning": "なぜこれが刺さるか" }
  ]
}
"""


def _join(values: Any) -> str:
    if isinstance(values, list):
        return ", ".join(str(v) for v in values)
    return str(values or "")


def build_strategy_prompt(hearing: Dict[str, Any]) -> str:
    """Render the hearing sheet as the strategy user message."""
    goal = hearing.get("goal") or {}
    product = hearing.get("product") or {}
    constraints = hearing.get("constraints") or {}
    voice = hearing.get("customer_voice") or {}
    comparison = hearing.get("comparison") or {}
    assets = hearing.get("assets") or {}
    brand = hearing.get("brand") or {}

    return f"""# Hearing Information
## 1. Goal
- Main Objective: {goal.get("main_objective", "")}
- Target Monthly New Customers: {goal.get("monthly_new_customers", "")}

## 2. Product/Service
- Menu Name: {product.get("menu_name", "")}
- Price: First {product.get("price_first", "")} / Normal {product.get("price_normal", "")}
- Format: {product.get("format", "")}
- Usage Type: {product.get("usage_type", "")}

## 3. Constraints
- Max Capacity: {constraints.get("max_capacity", "")}
- NG Conditions: {_join(constraints.get("ng_conditions"))}
- Unwanted Customer Types: {constraints.get("unwanted_customer_types", "")}

## 4. Customer Voice
- FAQ: {voice.get("frequent_questions", "")}
- Anxieties: {voice.get("pre_visit_anxieties", "")}
- Deciding Factors: {voice.get("deciding_factors", "")}
- Refusal Reasons: {voice.get("refusal_reasons", "")}

## 5. Comparison
- Competitors: {_join(comparison.get("competitors"))}
- Differentiation: {comparison.get("differentiation_points", "")}

## 6. Assets & Channels
- Assets: {assets.get("available_assets", "")}
- Feasible Channels: {_join(assets.get("feasible_channels"))}
- Writing Skill: {assets.get("writing_skill", "")}

## 7. Brand Policy
- NG Expressions: {brand.get("ng_expressions", "")}
- Desired Image: {brand.get("desired_image", "")}
"""
